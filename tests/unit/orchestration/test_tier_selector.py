# ABOUTME: Unit tests for DM/DIRECTOR tier routing.
# ABOUTME: Covers strategic keyword matching, checkpoint rounds, and the disjoint tool sets.

import pytest

from progression_engine.models.tiers import AITier, TierContext, TierReason
from progression_engine.orchestration.tier_selector import (
    DIRECTOR_KEYWORDS,
    DIRECTOR_TOOLS,
    DM_TOOLS,
    find_strategic_keyword,
    is_director_checkpoint,
    select_tier,
    tools_for_tier,
)


class TestFindStrategicKeyword:
    """Test suite for keyword detection"""

    @pytest.mark.parametrize("keyword", DIRECTOR_KEYWORDS)
    def test_every_keyword_detected(self, keyword):
        assert find_strategic_keyword(f"Tell me about the {keyword} here") == keyword

    def test_case_insensitive(self):
        assert find_strategic_keyword("What is the PLOT?") == "plot"

    def test_plural_forms(self):
        assert find_strategic_keyword("Any new plots?") == "plot"
        assert find_strategic_keyword("Two arcs converge") == "arc"

    def test_no_substring_matches(self):
        """'arc' inside 'search' or 'march' is not strategic"""
        assert find_strategic_keyword("I search the room") is None
        assert find_strategic_keyword("We march north") is None

    def test_empty_input(self):
        assert find_strategic_keyword("") is None


class TestDirectorCheckpoint:
    """Test suite for periodic DIRECTOR rounds"""

    def test_every_twentieth_round(self):
        assert is_director_checkpoint(20)
        assert is_director_checkpoint(40)
        assert not is_director_checkpoint(21)

    def test_missing_round_is_not_checkpoint(self):
        assert not is_director_checkpoint(None)
        assert not is_director_checkpoint(0)

    def test_custom_interval(self):
        assert is_director_checkpoint(15, interval=5)


class TestSelectTier:
    """Test suite for tier selection"""

    def test_ordinary_action_goes_to_dm(self):
        selection = select_tier("I attack the goblin", TierContext(current_round=7))

        assert selection.tier == AITier.DM
        assert selection.reason == TierReason.DEFAULT
        assert selection.tools == DM_TOOLS

    def test_keyword_goes_to_director(self):
        selection = select_tier("How is the story going?", TierContext(current_round=7))

        assert selection.tier == AITier.DIRECTOR
        assert selection.reason == TierReason.KEYWORD
        assert selection.matched_keyword == "story"
        assert selection.tools == DIRECTOR_TOOLS

    def test_checkpoint_round_goes_to_director(self):
        selection = select_tier("I open the door", TierContext(current_round=40))

        assert selection.tier == AITier.DIRECTOR
        assert selection.reason == TierReason.CHECKPOINT

    def test_keyword_takes_precedence_over_checkpoint(self):
        selection = select_tier("Let's talk pacing", TierContext(current_round=20))
        assert selection.reason == TierReason.KEYWORD

    def test_no_context_defaults_to_dm(self):
        assert select_tier("I open the door").tier == AITier.DM

    def test_custom_interval(self):
        selection = select_tier("I open the door", TierContext(current_round=10), director_round_interval=5)
        assert selection.tier == AITier.DIRECTOR


class TestToolSets:
    """Test suite for tier tool permissions"""

    def test_tool_sets_disjoint(self):
        assert DM_TOOLS.isdisjoint(DIRECTOR_TOOLS)

    def test_tools_for_tier(self):
        assert "roll_dice" in tools_for_tier(AITier.DM)
        assert "plan_story_beats" in tools_for_tier(AITier.DIRECTOR)
        assert "roll_dice" not in tools_for_tier(AITier.DIRECTOR)
