# ABOUTME: D&D 5e dice notation parser and resolver with keep-highest/lowest and compound rolls.
# ABOUTME: Supports "2d6+3", "d20", "1d20adv", "1d20+5dis", "4d6kh3", "2d20kl1-1" and "1d20+5, 1d6+2".

import random
import re
from typing import Protocol

from progression_engine.exceptions import InvalidNotation
from progression_engine.models.dice_models import (
    MAX_DICE_COUNT,
    MAX_MODIFIER,
    MIN_DICE_COUNT,
    MIN_MODIFIER,
    VALID_DICE_SIDES,
    CompoundRollResult,
    DiceExpression,
    KeepMode,
    RollResult,
)

# Optional count, 'd', die size, then either an advantage shorthand or an explicit
# keep clause, an optional signed modifier, and an optional trailing shorthand.
DICE_PATTERN = re.compile(
    r'^(?P<count>\d*)d(?P<sides>\d+)'
    r'(?:(?P<shorthand>adv|dis)|k(?P<keep>[hl])(?P<keep_count>\d+))?'
    r'(?P<modifier>[+-]\d+)?'
    r'(?P<trailing>adv|dis)?$'
)

COMPOUND_SEPARATOR = ","

ROLL_SUGGESTIONS = {
    "attack": ["1d20+5", "1d20adv", "1d20dis"],
    "damage": ["1d8+3", "2d6+1", "1d12+4"],
    "skill": ["1d20+2", "1d20+5", "1d20adv"],
    "save": ["1d20+3", "1d20+5", "1d20dis"],
    "initiative": ["1d20+2", "1d20+1"],
    "hit_die": ["1d8", "1d10", "1d12"],
    "default": ["1d20", "1d6", "1d8", "1d10", "1d12"],
}


class RandomSource(Protocol):
    """Anything with random.Random's randint (the random module itself qualifies)"""

    def randint(self, a: int, b: int) -> int: ...


def parse_dice_notation(notation: str) -> DiceExpression:
    """
    Parse a single D&D 5e dice expression.

    Supports patterns:
    - "2d6+3" -> 2 dice, d6, +3
    - "d20" -> implicit 1 die
    - "1d20adv" / "1d20+5adv" -> 2d20 keep highest 1
    - "1d20dis" -> 2d20 keep lowest 1
    - "4d6kh3" / "2d20kl1-1" -> explicit keep highest/lowest

    Case and whitespace are ignored. Advantage/disadvantage applies only to a
    single d20.

    Args:
        notation: Dice notation string (e.g., "2d6+3")

    Returns:
        Validated DiceExpression

    Raises:
        InvalidNotation: If notation is malformed or outside the allowed ranges
    """
    if notation is None:
        raise InvalidNotation("no dice notation provided")

    original = notation.strip()
    if not original:
        raise InvalidNotation("no dice notation provided", notation)

    if COMPOUND_SEPARATOR in original:
        raise InvalidNotation(
            "compound expressions must be parsed with parse_dice_expressions",
            original
        )

    cleaned = re.sub(r'\s+', '', original.lower())
    match = DICE_PATTERN.match(cleaned)

    if not match:
        raise InvalidNotation(
            "Expected format: 'XdY', 'XdY+Z', 'XdYkhN' or '1d20adv' "
            "(e.g., '2d6', '1d20+5', 'd6', '4d6kh3')",
            original
        )

    count = int(match.group("count")) if match.group("count") else 1
    sides = int(match.group("sides"))
    modifier = int(match.group("modifier")) if match.group("modifier") else 0

    if count < MIN_DICE_COUNT:
        raise InvalidNotation(f"Number of dice must be at least {MIN_DICE_COUNT}, got {count}", original)

    if count > MAX_DICE_COUNT:
        raise InvalidNotation(f"Number of dice cannot exceed {MAX_DICE_COUNT}, got {count}", original)

    if sides not in VALID_DICE_SIDES:
        raise InvalidNotation(
            f"Invalid die size: d{sides}. "
            f"Supported dice: {', '.join(f'd{d}' for d in sorted(VALID_DICE_SIDES))}",
            original
        )

    if not MIN_MODIFIER <= modifier <= MAX_MODIFIER:
        raise InvalidNotation(
            f"Modifier must be between {MIN_MODIFIER} and +{MAX_MODIFIER}, got {modifier}",
            original
        )

    shorthand = match.group("shorthand")
    trailing = match.group("trailing")
    keep = match.group("keep")

    if trailing and (shorthand or keep):
        raise InvalidNotation(
            "Use only one of advantage, disadvantage or an explicit keep clause",
            original
        )

    shorthand = shorthand or trailing

    if shorthand:
        if count != 1 or sides != 20:
            raise InvalidNotation(
                "Advantage/disadvantage only applies to a single d20 roll",
                original
            )
        keep_mode = KeepMode.HIGHEST if shorthand == "adv" else KeepMode.LOWEST
        return DiceExpression(
            count=2,
            sides=sides,
            modifier=modifier,
            keep_mode=keep_mode,
            keep_count=1,
            notation=original,
        )

    if keep:
        keep_count = int(match.group("keep_count"))
        if keep_count < 1:
            raise InvalidNotation(f"Must keep at least 1 die, got {keep_count}", original)
        if keep_count > count:
            raise InvalidNotation(f"Cannot keep {keep_count} dice from {count} dice", original)
        return DiceExpression(
            count=count,
            sides=sides,
            modifier=modifier,
            keep_mode=KeepMode.HIGHEST if keep == "h" else KeepMode.LOWEST,
            keep_count=keep_count,
            notation=original,
        )

    return DiceExpression(
        count=count,
        sides=sides,
        modifier=modifier,
        keep_mode=KeepMode.NONE,
        keep_count=count,
        notation=original,
    )


def parse_dice_expressions(notation: str) -> list[DiceExpression]:
    """
    Parse a possibly comma-separated roll request into its expressions.

    Each part is validated independently; the first invalid part raises.

    Raises:
        InvalidNotation: If any part is empty or invalid
    """
    if notation is None or not notation.strip():
        raise InvalidNotation("no dice notation provided", notation)

    parts = [part.strip() for part in notation.split(COMPOUND_SEPARATOR)]
    if any(not part for part in parts):
        raise InvalidNotation("empty expression in compound roll", notation.strip())

    return [parse_dice_notation(part) for part in parts]


def resolve_dice(expression: DiceExpression, rng: RandomSource | None = None) -> RollResult:
    """
    Roll a parsed expression.

    Keep rules use a stable sort: equal dice keep their roll order, so the
    earlier of two tied dice is kept first. Kept dice are reported in keep
    order, dropped dice in roll order.

    Args:
        expression: Parsed dice expression
        rng: Random source (default: the random module)

    Returns:
        RollResult with every roll, the kept/dropped partition and total
    """
    source = rng if rng is not None else random

    all_rolls = [
        source.randint(1, expression.sides)
        for _ in range(expression.count)
    ]

    if expression.keep_mode == KeepMode.NONE:
        kept_rolls = list(all_rolls)
        dropped_rolls: list[int] = []
    else:
        descending = expression.keep_mode == KeepMode.HIGHEST
        order = sorted(
            range(len(all_rolls)),
            key=lambda idx: -all_rolls[idx] if descending else all_rolls[idx]
        )
        kept_indices = order[:expression.keep_count]
        kept_set = set(kept_indices)
        kept_rolls = [all_rolls[idx] for idx in kept_indices]
        dropped_rolls = [
            roll for idx, roll in enumerate(all_rolls)
            if idx not in kept_set
        ]

    return RollResult(
        expression=expression,
        all_rolls=all_rolls,
        kept_rolls=kept_rolls,
        dropped_rolls=dropped_rolls,
        total=sum(kept_rolls) + expression.modifier,
    )


def roll_dice(
    notation: str,
    rng: RandomSource | None = None
) -> RollResult | CompoundRollResult:
    """
    Parse and roll dice notation.

    Examples:
        >>> result = roll_dice("2d6+3")
        >>> len(result.all_rolls)
        2
        >>> compound = roll_dice("1d20+5, 1d6+2")
        >>> len(compound.results)
        2

    Args:
        notation: Dice notation, optionally comma-separated
        rng: Random source (default: the random module)

    Returns:
        RollResult for a single expression, CompoundRollResult for a list

    Raises:
        InvalidNotation: If any expression is invalid (nothing is rolled)
    """
    expressions = parse_dice_expressions(notation)

    if len(expressions) == 1:
        return resolve_dice(expressions[0], rng)

    results = [resolve_dice(expression, rng) for expression in expressions]
    return CompoundRollResult(
        results=results,
        grand_total=sum(result.total for result in results),
        notation=notation.strip(),
    )


def is_valid_notation(notation: str) -> bool:
    """Whether notation (single or compound) would parse"""
    try:
        parse_dice_expressions(notation)
    except InvalidNotation:
        return False
    return True


def get_roll_suggestions(context: str | None = None) -> list[str]:
    """
    Suggested expressions for a roll context.

    Args:
        context: "attack", "damage", "skill", "save", "initiative" or "hit_die"

    Returns:
        Expressions for the context, or the default set when unknown
    """
    key = (context or "default").lower()
    return list(ROLL_SUGGESTIONS.get(key, ROLL_SUGGESTIONS["default"]))
