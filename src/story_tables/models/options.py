"""Pydantic V2 schemas for advanced roll options.

Roll options travel with a table (its defaults) and with each roll call
(per-call overrides). Only fields a caller explicitly sets take part in a
merge, so a table default of ``advantage_count=3`` survives a call that
only changes the roll type.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from story_tables.core.constants import DEFAULT_ADVANTAGE_COUNT, DEFAULT_MAX_REROLLS


class RollType(StrEnum):
    """Strategies for producing the raw d100 value."""

    STANDARD = "standard"
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"
    EXPLODING = "exploding"
    REROLL = "reroll"


class RollModifiers(BaseModel):
    """Arithmetic adjustments applied to the raw roll.

    Attributes:
        bonus: Added to the raw roll first.
        multiplier: Multiplies the roll after the bonus.
        threshold: Floor for the adjusted roll; 0 disables it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    bonus: float = Field(default=0, description="Additive bonus")
    multiplier: float = Field(default=1, gt=0, description="Multiplicative factor")
    threshold: float = Field(default=0, description="Floor for the adjusted roll")

    def apply(self, raw: float) -> float:
        """Apply bonus, multiplier and threshold to a raw roll.

        Args:
            raw: The raw die total.

        Returns:
            The adjusted roll.
        """
        total = (raw + self.bonus) * self.multiplier
        if self.threshold and total < self.threshold:
            total = self.threshold
        return total


class AdvancedRollOptions(BaseModel):
    """Options controlling how a table roll is produced.

    Attributes:
        roll_type: Strategy for the raw roll.
        reroll_condition: Expression re-evaluated for the reroll strategy.
        advantage_count: Dice rolled for advantage (at least 2).
        max_rerolls: Re-roll budget for the reroll strategy.
        modifiers: Bonus, multiplier and threshold.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    roll_type: RollType = Field(default=RollType.STANDARD, description="Roll strategy")
    reroll_condition: str | None = Field(default=None, description="Reroll expression")
    advantage_count: int = Field(
        default=DEFAULT_ADVANTAGE_COUNT,
        ge=2,
        description="Dice rolled for advantage",
    )
    max_rerolls: int = Field(
        default=DEFAULT_MAX_REROLLS,
        ge=0,
        description="Maximum rerolls",
    )
    modifiers: RollModifiers = Field(default_factory=RollModifiers)

    def merged_with(self, override: AdvancedRollOptions | None) -> AdvancedRollOptions:
        """Layer another set of options over this one.

        Fields the override explicitly set win; modifiers merge field by
        field so an override bonus keeps this set's multiplier.

        Args:
            override: Options taking precedence, or None.

        Returns:
            A new merged options instance.
        """
        if override is None:
            return self

        update = {
            name: getattr(override, name)
            for name in override.model_fields_set
            if name != "modifiers"
        }
        if "modifiers" in override.model_fields_set:
            update["modifiers"] = self.modifiers.model_copy(
                update=override.modifiers.model_dump(exclude_unset=True)
            )
        return self.model_copy(update=update)


__all__ = [
    "RollType",
    "RollModifiers",
    "AdvancedRollOptions",
]
