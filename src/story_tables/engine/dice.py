"""Dice rolling for table lookups.

Table rolls draw from a per-instance pseudo-random source so that an engine
can be seeded (or scripted in tests) without touching global state. Dice
notation such as ``2d6+3`` is rolled with the d20 library.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from story_tables.core.constants import DIE_SIZE
from story_tables.core.exceptions import DiceRollError
from story_tables.core.logging import get_logger
from story_tables.models.options import RollType


logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class D100Roll:
    """A raw table roll.

    Attributes:
        value: Value used for lookup, within [1, 100].
        dice: Every die rolled to produce the value.
        roll_type: Strategy used.
        explosions: Number of times an exploding roll re-rolled.
    """

    value: int
    dice: tuple[int, ...]
    roll_type: RollType
    explosions: int = 0


@dataclass(frozen=True)
class DiceExpression:
    """A rolled dice expression.

    Attributes:
        expression: The original dice expression string.
        total: The total result of the roll.
        dice: Individual kept dice results.
        modifier: Static modifier applied.
    """

    expression: str
    total: int
    dice: list[int]
    modifier: int


class DiceRoller:
    """Pseudo-random source for table rolls.

    Example:
        >>> roller = DiceRoller(seed=42)
        >>> roll = roller.roll_d100(RollType.ADVANTAGE, advantage_count=3)
        >>> 1 <= roll.value <= 100
        True
    """

    def __init__(
        self,
        *,
        seed: int | None = None,
        rng: random.Random | None = None,
        max_explosions: int = 20,
    ) -> None:
        """Initialize the dice roller.

        Args:
            seed: Optional random seed for reproducible rolls.
            rng: Random source to use instead of a new seeded one.
            max_explosions: Upper bound on exploding re-rolls.
        """
        self._rng = rng if rng is not None else random.Random(seed)
        self._max_explosions = max_explosions
        logger.debug("DiceRoller initialized", seed=seed, max_explosions=max_explosions)

    @property
    def rng(self) -> random.Random:
        """The underlying random source."""
        return self._rng

    def d100(self) -> int:
        """Roll a single d100."""
        return self._rng.randint(1, DIE_SIZE)

    def randint(self, low: int, high: int) -> int:
        """Uniform integer in [low, high]; the bounds may be given in either order."""
        if low > high:
            low, high = high, low
        return self._rng.randint(low, high)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return self._rng.random()

    def choice(self, items: Sequence[T]) -> T:
        """Pick one item uniformly."""
        return items[self._rng.randrange(len(items))]

    def sample(self, items: Sequence[T], count: int) -> list[T]:
        """Pick up to ``count`` distinct items uniformly."""
        return self._rng.sample(list(items), min(count, len(items)))

    def roll_d100(
        self,
        roll_type: RollType = RollType.STANDARD,
        *,
        advantage_count: int = 2,
    ) -> D100Roll:
        """Roll a d100 with a strategy.

        The reroll strategy needs a condition evaluator, so it is driven by
        the table roller; here it behaves like a standard roll.

        Args:
            roll_type: Strategy to use.
            advantage_count: Dice rolled for advantage.

        Returns:
            The raw roll.
        """
        if roll_type == RollType.ADVANTAGE:
            dice = tuple(self.d100() for _ in range(max(2, advantage_count)))
            return D100Roll(value=max(dice), dice=dice, roll_type=roll_type)

        if roll_type == RollType.DISADVANTAGE:
            dice = (self.d100(), self.d100())
            return D100Roll(value=min(dice), dice=dice, roll_type=roll_type)

        if roll_type == RollType.EXPLODING:
            return self._roll_exploding()

        value = self.d100()
        return D100Roll(value=value, dice=(value,), roll_type=roll_type)

    def _roll_exploding(self) -> D100Roll:
        rolled = [self.d100()]
        explosions = 0
        while rolled[-1] == DIE_SIZE and explosions < self._max_explosions:
            rolled.append(self.d100())
            explosions += 1

        if rolled[-1] == DIE_SIZE:
            logger.warning("Exploding roll capped", explosions=explosions)

        total = sum(rolled)
        return D100Roll(
            value=min(total, DIE_SIZE),
            dice=tuple(rolled),
            roll_type=RollType.EXPLODING,
            explosions=explosions,
        )

    def roll(self, expression: str) -> DiceExpression:
        """Roll dice notation with the d20 library.

        Args:
            expression: Dice expression (e.g., '1d100', '2d6+3').

        Returns:
            DiceExpression containing roll results.

        Raises:
            DiceRollError: If the expression is invalid.
        """
        if not expression or not expression.strip():
            raise DiceRollError("Empty dice expression", expression=expression)

        try:
            import d20

            result: d20.RollResult = d20.roll(expression)
        except ImportError as exc:
            raise DiceRollError(
                "d20 library not installed. Install with: pip install d20",
                expression=expression,
            ) from exc
        except Exception as exc:
            raise DiceRollError(
                f"Invalid dice expression: {exc}",
                expression=expression,
            ) from exc

        dice_values = self._extract_dice_values(result.expr)
        rolled = DiceExpression(
            expression=expression,
            total=result.total,
            dice=dice_values,
            modifier=result.total - sum(dice_values),
        )
        logger.debug("Dice rolled", expression=expression, total=result.total)
        return rolled

    def _extract_dice_values(self, expr: Any) -> list[int]:
        """Extract individual dice values from a d20 expression.

        Args:
            expr: The d20 expression tree.

        Returns:
            List of individual kept dice values.
        """
        import d20

        values: list[int] = []

        def traverse(node: Any) -> None:
            if isinstance(node, d20.Dice):
                for die in node.values:
                    if getattr(die, "kept", True):
                        values.append(die.number)
            elif hasattr(node, "children"):
                for child in node.children:
                    traverse(child)

        traverse(expr)
        return values


def validate_formula(expression: str) -> str | None:
    """Check that dice notation parses.

    Args:
        expression: Dice expression to check.

    Returns:
        None if the expression parses, otherwise an error message.
    """
    if not expression or not expression.strip():
        return "Dice formula is empty"

    import d20

    try:
        d20.parse(expression)
    except d20.RollError as exc:
        return f"Invalid dice formula {expression!r}: {exc}"
    return None


__all__ = [
    "D100Roll",
    "DiceExpression",
    "DiceRoller",
    "validate_formula",
]
