# ABOUTME: Unit tests for dice expression and roll result models.
# ABOUTME: Validates die sizes, keep counts, kept/dropped partition and compound totals.

import pytest
from pydantic import ValidationError

from progression_engine.models.dice_models import (
    CompoundRollResult,
    DiceExpression,
    KeepMode,
    RollResult,
)


def make_expression(**overrides) -> DiceExpression:
    fields = {
        "count": 2,
        "sides": 20,
        "modifier": 3,
        "keep_mode": KeepMode.HIGHEST,
        "keep_count": 1,
        "notation": "2d20kh1+3",
    }
    fields.update(overrides)
    return DiceExpression(**fields)


class TestDiceExpression:
    """Test suite for DiceExpression validation"""

    def test_valid_expression(self):
        expr = make_expression()
        assert expr.min_total == 4
        assert expr.max_total == 23

    def test_invalid_sides_rejected(self):
        with pytest.raises(ValidationError, match="sides must be one of"):
            make_expression(sides=7)

    def test_keep_count_above_count_rejected(self):
        with pytest.raises(ValidationError, match="cannot exceed count"):
            make_expression(keep_count=3)

    def test_keep_none_must_keep_all(self):
        with pytest.raises(ValidationError, match="must equal count"):
            make_expression(keep_mode=KeepMode.NONE, keep_count=1)

    def test_frozen(self):
        expr = make_expression()
        with pytest.raises(ValidationError):
            expr.count = 3


class TestRollResult:
    """Test suite for RollResult partition validation"""

    def test_valid_partition(self):
        result = RollResult(
            expression=make_expression(),
            all_rolls=[11, 17],
            kept_rolls=[17],
            dropped_rolls=[11],
            total=20,
        )
        assert result.notation == "2d20kh1+3"
        assert result.modifier == 3

    def test_wrong_roll_count_rejected(self):
        with pytest.raises(ValidationError, match="must match dice count"):
            RollResult(expression=make_expression(), all_rolls=[17], kept_rolls=[17], total=20)

    def test_non_partition_rejected(self):
        with pytest.raises(ValidationError, match="partition"):
            RollResult(
                expression=make_expression(),
                all_rolls=[11, 17],
                kept_rolls=[17],
                dropped_rolls=[12],
                total=20,
            )

    def test_wrong_total_rejected(self):
        with pytest.raises(ValidationError, match="doesn't match kept rolls"):
            RollResult(
                expression=make_expression(),
                all_rolls=[11, 17],
                kept_rolls=[17],
                dropped_rolls=[11],
                total=17,
            )


class TestCompoundRollResult:
    """Test suite for compound roll totals"""

    def make_roll(self, value: int) -> RollResult:
        expr = DiceExpression(count=1, sides=6, keep_count=1, notation="1d6")
        return RollResult(expression=expr, all_rolls=[value], kept_rolls=[value], total=value)

    def test_grand_total_must_match(self):
        with pytest.raises(ValidationError, match="grand_total"):
            CompoundRollResult(results=[self.make_roll(3), self.make_roll(4)], grand_total=8, notation="1d6, 1d6")

    def test_display_nests_each_roll(self):
        compound = CompoundRollResult(
            results=[self.make_roll(3), self.make_roll(4)], grand_total=7, notation="1d6, 1d6"
        )
        display = compound.to_display()
        assert display["grandTotal"] == 7
        assert [r["total"] for r in display["rolls"]] == [3, 4]

    def test_requires_at_least_one_result(self):
        with pytest.raises(ValidationError):
            CompoundRollResult(results=[], grand_total=0, notation="")
