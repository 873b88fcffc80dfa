# ABOUTME: Unit tests for AI tool-call handling.
# ABOUTME: Covers the roll_dice tool, DC checks, error reporting, and tool result summaries.

import pytest
from pydantic import ValidationError

from progression_engine.models.tool_results import (
    DiceRollToolResult,
    EncounterGeneratedResult,
    MemorySaveResult,
    NpcGeneratedResult,
    RuleLookupResult,
    StateUpdateResult,
    parse_tool_result,
)
from progression_engine.orchestration.tool_handlers import describe_tool_result, execute_dice_tool
from tests.conftest import ScriptedRandom


class TestExecuteDiceTool:
    """Test suite for the roll_dice tool"""

    def test_roll_against_dc_success(self):
        result = execute_dice_tool(
            {"expression": "1d20+5", "reason": "Stealth", "dc": 15, "ability": "DEX"},
            ScriptedRandom([12]),
        )

        assert result.success
        assert result.total == 17
        assert result.rolls == [12]
        assert result.passed is True
        assert result.ability == "DEX"

    def test_roll_against_dc_failure(self):
        result = execute_dice_tool({"expression": "1d20", "dc": 15}, ScriptedRandom([3]))
        assert result.passed is False

    def test_no_dc_leaves_passed_unset(self):
        result = execute_dice_tool({"expression": "2d6"}, ScriptedRandom([3, 4]))
        assert result.total == 7
        assert result.passed is None

    def test_advantage_reports_dropped_die(self):
        result = execute_dice_tool({"expression": "1d20adv"}, ScriptedRandom([6, 18]))
        assert result.rolls == [18]
        assert result.dropped_rolls == [6]

    def test_compound_uses_grand_total(self):
        result = execute_dice_tool({"expression": "1d20+5, 1d6+2"}, ScriptedRandom([10, 4]))
        assert result.total == 21
        assert result.rolls == [10, 4]

    def test_numeric_string_dc_accepted(self):
        result = execute_dice_tool({"expression": "1d20+5", "dc": "15"}, ScriptedRandom([12]))

        assert result.success
        assert result.dc == 15
        assert result.passed is True

    def test_out_of_range_dc_reported(self):
        scripted = ScriptedRandom([12])
        result = execute_dice_tool({"expression": "1d20+5", "dc": 35}, scripted)

        assert not result.success
        assert result.error.startswith("Invalid dc:")
        assert result.total is None
        assert scripted.calls == []

    def test_non_numeric_dc_reported(self):
        result = execute_dice_tool({"expression": "1d20", "dc": "hard"}, ScriptedRandom([12]))

        assert not result.success
        assert "dc" in result.error

    def test_unknown_ability_reported(self):
        result = execute_dice_tool({"expression": "1d20", "ability": "LUCK"}, ScriptedRandom([12]))

        assert not result.success
        assert result.error.startswith("Invalid ability:")
        assert result.ability is None

    def test_invalid_notation_reported_not_defaulted(self):
        scripted = ScriptedRandom([])
        result = execute_dice_tool({"expression": "1d7"}, scripted)

        assert not result.success
        assert "Invalid die size" in result.error
        assert result.total is None
        assert scripted.calls == []


class TestDescribeToolResult:
    """Test suite for tool result summaries"""

    def test_dice_roll_with_dc(self):
        result = DiceRollToolResult(
            expression="1d20+5", total=17, rolls=[12], reason="Stealth", dc=15, passed=True
        )
        assert describe_tool_result(result) == "Stealth: Rolled 1d20+5 = **17** vs DC 15 - **SUCCESS**"

    def test_dice_roll_lists_multiple_rolls(self):
        result = DiceRollToolResult(expression="2d6", total=7, rolls=[3, 4])
        assert describe_tool_result(result) == "Roll: Rolled 2d6 = **7** (3, 4)"

    def test_dice_roll_error(self):
        result = DiceRollToolResult(success=False, error="bad", expression="1d7")
        assert describe_tool_result(result) == "Error rolling 1d7: bad"

    def test_rule_lookup(self):
        assert describe_tool_result(RuleLookupResult(query="grapple")) == 'No SRD rules found for "grapple"'
        found = RuleLookupResult(query="grapple", matches=[{"name": "Grappling"}])
        assert describe_tool_result(found) == 'Found 1 rule(s) for "grapple"'

    def test_other_variants(self):
        assert describe_tool_result(StateUpdateResult()) == "Campaign state updated successfully"
        assert describe_tool_result(MemorySaveResult(memory_type="npc", name="Mira")) == 'Saved npc: "Mira"'
        assert describe_tool_result(
            EncounterGeneratedResult(encounter_type="combat", difficulty="hard", party_level=3)
        ) == "Generated hard combat encounter for level 3 party"
        assert describe_tool_result(
            NpcGeneratedResult(name="Mira", role="innkeeper")
        ) == "Generated minor innkeeper: Mira"

    def test_failed_non_dice_result(self):
        result = StateUpdateResult(success=False, error="campaign locked")
        assert describe_tool_result(result) == "Error in state update: campaign locked"


class TestParseToolResult:
    """Test suite for discriminated tool payload parsing"""

    def test_dispatches_on_kind(self):
        result = parse_tool_result({"kind": "npc_generated", "name": "Mira", "role": "innkeeper"})
        assert isinstance(result, NpcGeneratedResult)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            parse_tool_result({"kind": "teleport"})

    def test_dc_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            parse_tool_result({"kind": "dice_roll", "expression": "1d20", "dc": 31})
