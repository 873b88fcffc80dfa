# ABOUTME: Pydantic models for parsed dice expressions and roll results.
# ABOUTME: Includes KeepMode enum, DiceExpression, RollResult partition validation and compound rolls.

from collections import Counter
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Standard D&D dice types
VALID_DICE_SIDES = frozenset({4, 6, 8, 10, 12, 20, 100})

MIN_DICE_COUNT = 1
MAX_DICE_COUNT = 100
MIN_MODIFIER = -100
MAX_MODIFIER = 100


class KeepMode(str, Enum):
    """Which dice survive into the total"""
    NONE = "none"
    HIGHEST = "highest"
    LOWEST = "lowest"


class DiceExpression(BaseModel):
    """Validated dice expression produced by the notation parser"""

    model_config = ConfigDict(frozen=True)

    count: int = Field(
        ge=MIN_DICE_COUNT,
        le=MAX_DICE_COUNT,
        description="Number of dice rolled (advantage/disadvantage rolls 2)"
    )
    sides: int = Field(
        description="Die size, one of d4, d6, d8, d10, d12, d20, d100"
    )
    modifier: int = Field(
        default=0,
        ge=MIN_MODIFIER,
        le=MAX_MODIFIER,
        description="Static modifier added to the kept dice"
    )
    keep_mode: KeepMode = Field(
        default=KeepMode.NONE,
        description="Keep all, the highest, or the lowest dice"
    )
    keep_count: int = Field(
        ge=1,
        description="How many dice are kept (equals count when keep_mode is none)"
    )
    notation: str = Field(
        description="Notation the expression was parsed from"
    )

    @model_validator(mode='after')
    def validate_dice(self):
        """Validate die size and keep count against the dice pool"""
        if self.sides not in VALID_DICE_SIDES:
            raise ValueError(f"sides must be one of {sorted(VALID_DICE_SIDES)}, got {self.sides}")
        if self.keep_count > self.count:
            raise ValueError(
                f"keep_count ({self.keep_count}) cannot exceed count ({self.count})"
            )
        if self.keep_mode == KeepMode.NONE and self.keep_count != self.count:
            raise ValueError("keep_count must equal count when keep_mode is none")
        return self

    @property
    def min_total(self) -> int:
        """Smallest achievable total"""
        return self.keep_count + self.modifier

    @property
    def max_total(self) -> int:
        """Largest achievable total"""
        return self.keep_count * self.sides + self.modifier


class RollResult(BaseModel):
    """Outcome of resolving one dice expression

    all_rolls keeps roll order. kept_rolls and dropped_rolls partition all_rolls;
    dropped_rolls stay in roll order.
    """

    model_config = ConfigDict(frozen=True)

    expression: DiceExpression
    all_rolls: list[int] = Field(
        description="Every die rolled, in roll order"
    )
    kept_rolls: list[int] = Field(
        description="Dice counted toward the total"
    )
    dropped_rolls: list[int] = Field(
        default_factory=list,
        description="Dice rolled but discarded by keep rules"
    )
    total: int = Field(
        description="Sum of kept rolls + modifier"
    )

    @model_validator(mode='after')
    def validate_partition(self):
        """Validate kept/dropped partition and the total"""
        if len(self.all_rolls) != self.expression.count:
            raise ValueError(
                f"all_rolls length ({len(self.all_rolls)}) must match "
                f"dice count ({self.expression.count})"
            )

        if Counter(self.kept_rolls) + Counter(self.dropped_rolls) != Counter(self.all_rolls):
            raise ValueError("kept_rolls and dropped_rolls must partition all_rolls")

        expected_total = sum(self.kept_rolls) + self.expression.modifier
        if self.total != expected_total:
            raise ValueError(
                f"total ({self.total}) doesn't match kept rolls + modifier ({expected_total})"
            )

        return self

    @property
    def notation(self) -> str:
        return self.expression.notation

    @property
    def modifier(self) -> int:
        return self.expression.modifier

    def to_display(self) -> dict[str, Any]:
        """Wire/display format: kept rolls as 'rolls', discarded as 'droppedRolls'"""
        return {
            "total": self.total,
            "rolls": list(self.kept_rolls),
            "droppedRolls": list(self.dropped_rolls),
            "notation": self.notation,
        }


class CompoundRollResult(BaseModel):
    """Result of a comma-separated roll request such as '1d20+5, 1d6+2'"""

    model_config = ConfigDict(frozen=True)

    results: list[RollResult] = Field(min_length=1)
    grand_total: int
    notation: str

    @model_validator(mode='after')
    def validate_grand_total(self):
        """Grand total is the sum of each sub-result's total"""
        expected = sum(result.total for result in self.results)
        if self.grand_total != expected:
            raise ValueError(
                f"grand_total ({self.grand_total}) doesn't match sum of totals ({expected})"
            )
        return self

    def to_display(self) -> dict[str, Any]:
        return {
            "rolls": [result.to_display() for result in self.results],
            "grandTotal": self.grand_total,
            "notation": self.notation,
        }
