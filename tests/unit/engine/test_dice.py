"""Tests for dice rolling mechanics."""

from __future__ import annotations

from typing import Any

import pytest

from story_tables.core.exceptions import DiceRollError
from story_tables.engine.dice import DiceExpression, DiceRoller, validate_formula
from story_tables.models.options import RollType


class TestD100Strategies:
    """Tests for d100 roll strategies."""

    def test_standard_roll_in_range(self, dice_roller: DiceRoller) -> None:
        """Test standard rolls stay within 1-100."""
        for _ in range(500):
            roll = dice_roller.roll_d100()
            assert 1 <= roll.value <= 100
            assert roll.dice == (roll.value,)

    def test_advantage_takes_highest(self, scripted_dice: Any) -> None:
        """Test advantage keeps the highest of the dice."""
        roller = scripted_dice([12, 87, 40])

        roll = roller.roll_d100(RollType.ADVANTAGE, advantage_count=3)

        assert roll.value == 87
        assert roll.dice == (12, 87, 40)

    def test_advantage_rolls_at_least_two(self, scripted_dice: Any) -> None:
        """Test advantage never rolls fewer than two dice."""
        roller = scripted_dice([5, 9])

        roll = roller.roll_d100(RollType.ADVANTAGE, advantage_count=1)

        assert roll.dice == (5, 9)

    def test_disadvantage_takes_lowest(self, scripted_dice: Any) -> None:
        """Test disadvantage keeps the lower of two dice."""
        roller = scripted_dice([64, 23])

        roll = roller.roll_d100(RollType.DISADVANTAGE)

        assert roll.value == 23

    def test_exploding_accumulates_and_clamps(self, scripted_dice: Any) -> None:
        """Test exploding rolls keep rolling on 100 and clamp the total."""
        roller = scripted_dice([100, 100, 7])

        roll = roller.roll_d100(RollType.EXPLODING)

        assert roll.dice == (100, 100, 7)
        assert roll.explosions == 2
        assert roll.value == 100

    def test_exploding_without_explosion(self, scripted_dice: Any) -> None:
        """Test an exploding roll below 100 is an ordinary roll."""
        roll = scripted_dice([42]).roll_d100(RollType.EXPLODING)

        assert roll.value == 42
        assert roll.explosions == 0

    def test_exploding_is_capped(self, scripted_dice: Any) -> None:
        """Test the explosion cap ends a run of 100s."""
        scripted = scripted_dice([100] * 10)
        roller = DiceRoller(rng=scripted.rng, max_explosions=3)

        roll = roller.roll_d100(RollType.EXPLODING)

        assert roll.explosions == 3
        assert len(roll.dice) == 4

    def test_seeded_rollers_repeat(self) -> None:
        """Test two rollers with the same seed produce the same rolls."""
        first = DiceRoller(seed=7)
        second = DiceRoller(seed=7)

        assert [first.d100() for _ in range(20)] == [second.d100() for _ in range(20)]


class TestUniformHelpers:
    """Tests for uniform helpers."""

    def test_randint_accepts_reversed_bounds(self, dice_roller: DiceRoller) -> None:
        """Test randint swaps reversed bounds."""
        for _ in range(100):
            assert 3 <= dice_roller.randint(10, 3) <= 10

    def test_sample_is_distinct(self, dice_roller: DiceRoller) -> None:
        """Test sample never repeats items and caps at the population."""
        picked = dice_roller.sample(["a", "b", "c"], 5)

        assert sorted(picked) == ["a", "b", "c"]


class TestDiceNotation:
    """Tests for dice-notation rolls."""

    def test_simple_roll(self, dice_roller: DiceRoller) -> None:
        """Test a simple d20 roll."""
        result = dice_roller.roll("1d20")

        assert isinstance(result, DiceExpression)
        assert 1 <= result.total <= 20
        assert len(result.dice) == 1

    def test_roll_with_modifier(self, dice_roller: DiceRoller) -> None:
        """Test roll with positive modifier."""
        result = dice_roller.roll("1d20+5")

        assert result.modifier == 5
        assert 6 <= result.total <= 25

    def test_multiple_dice(self, dice_roller: DiceRoller) -> None:
        """Test rolling multiple dice."""
        result = dice_roller.roll("3d6")

        assert 3 <= result.total <= 18
        assert len(result.dice) == 3

    def test_keep_highest_ignores_dropped(self, dice_roller: DiceRoller) -> None:
        """Test dropped dice are not reported."""
        result = dice_roller.roll("4d6kh3")

        assert len(result.dice) == 3
        assert result.total == sum(result.dice)

    def test_invalid_expression(self, dice_roller: DiceRoller) -> None:
        """Test invalid expressions raise DiceRollError."""
        with pytest.raises(DiceRollError):
            dice_roller.roll("banana")

    def test_empty_expression(self, dice_roller: DiceRoller) -> None:
        """Test empty expressions raise DiceRollError."""
        with pytest.raises(DiceRollError) as exc_info:
            dice_roller.roll("  ")

        assert "Empty" in exc_info.value.message


class TestValidateFormula:
    """Tests for validate_formula."""

    @pytest.mark.parametrize("formula", ["1d100", "2d6+3", "1d20 + 1d4"])
    def test_valid(self, formula: str) -> None:
        """Test valid formulas pass."""
        assert validate_formula(formula) is None

    @pytest.mark.parametrize("formula", ["", "2d", "2d6+"])
    def test_invalid(self, formula: str) -> None:
        """Test invalid formulas return a message."""
        assert validate_formula(formula)
