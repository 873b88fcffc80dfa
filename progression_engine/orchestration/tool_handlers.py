# ABOUTME: Engine-side handling of AI tool calls: runs the roll_dice tool and renders tool result summaries.
# ABOUTME: Summaries match the closed ToolResult union exhaustively.

from typing import Any, assert_never

from loguru import logger
from pydantic import ValidationError

from progression_engine.exceptions import InvalidNotation
from progression_engine.models.dice_models import CompoundRollResult
from progression_engine.models.tool_results import (
    DiceRollToolResult,
    DiceToolArguments,
    EncounterGeneratedResult,
    MemorySaveResult,
    NpcGeneratedResult,
    RuleLookupResult,
    StateUpdateResult,
    ToolResult,
)
from progression_engine.utils.dice import RandomSource, roll_dice


def execute_dice_tool(arguments: dict[str, Any], rng: RandomSource | None = None) -> DiceRollToolResult:
    """
    Run the roll_dice tool.

    Invalid arguments (malformed notation, a DC outside 1-30, an unknown
    ability) are reported in the result (success=False) so the narrator can
    correct itself; they are never replaced by a default roll.

    Args:
        arguments: Tool arguments: expression, optional reason, dc, ability
        rng: Random source (default: the random module)

    Returns:
        DiceRollToolResult
    """
    expression = str(arguments.get("expression", "")).strip()

    try:
        args = DiceToolArguments.model_validate({**arguments, "expression": expression})
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        logger.warning(f"roll_dice tool rejected argument '{field}': {first['msg']}")
        return DiceRollToolResult(
            success=False,
            error=f"Invalid {field}: {first['msg']}",
            expression=expression,
        )

    try:
        result = roll_dice(args.expression, rng)
    except InvalidNotation as e:
        logger.warning(f"roll_dice tool rejected notation '{expression}': {e.reason}")
        return DiceRollToolResult(
            success=False,
            error=str(e),
            expression=expression,
            reason=args.reason,
            dc=args.dc,
            ability=args.ability,
        )

    if isinstance(result, CompoundRollResult):
        total = result.grand_total
        rolls = [roll for sub in result.results for roll in sub.kept_rolls]
        dropped = [roll for sub in result.results for roll in sub.dropped_rolls]
    else:
        total = result.total
        rolls = list(result.kept_rolls)
        dropped = list(result.dropped_rolls)

    return DiceRollToolResult(
        expression=expression,
        total=total,
        rolls=rolls,
        dropped_rolls=dropped,
        reason=args.reason,
        dc=args.dc,
        ability=args.ability,
        passed=(total >= args.dc) if args.dc is not None else None,
    )


def describe_tool_result(result: ToolResult) -> str:
    """One-line chat summary of a tool result"""
    if isinstance(result, DiceRollToolResult):
        if not result.success:
            return f"Error rolling {result.expression}: {result.error}"
        label = result.reason or "Roll"
        line = f"{label}: Rolled {result.expression} = **{result.total}**"
        if len(result.rolls) > 1:
            line += f" ({', '.join(str(r) for r in result.rolls)})"
        if result.dc is not None:
            line += f" vs DC {result.dc} - {'**SUCCESS**' if result.passed else '**FAILURE**'}"
        return line

    if not result.success:
        return f"Error in {result.kind.replace('_', ' ')}: {result.error}"

    if isinstance(result, RuleLookupResult):
        if not result.matches:
            return f'No SRD rules found for "{result.query}"'
        return f'Found {len(result.matches)} rule(s) for "{result.query}"'
    elif isinstance(result, StateUpdateResult):
        return "Campaign state updated successfully"
    elif isinstance(result, MemorySaveResult):
        return f'Saved {result.memory_type}: "{result.name}"'
    elif isinstance(result, EncounterGeneratedResult):
        return (
            f"Generated {result.difficulty} {result.encounter_type} encounter "
            f"for level {result.party_level} party"
        )
    elif isinstance(result, NpcGeneratedResult):
        return f"Generated {result.importance} {result.role}: {result.name}"
    else:
        assert_never(result)
