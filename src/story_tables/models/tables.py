"""Pydantic V2 schemas for random tables.

This module defines tables, their entries, the modifiers that alter an
entry's eligibility, weight, linkage or consumption, and the declared
relationships between tables.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from story_tables.models.options import AdvancedRollOptions


# =============================================================================
# Enumerations
# =============================================================================


class ModifierType(StrEnum):
    """Kinds of entry modifiers."""

    CONDITIONAL = "conditional"
    WEIGHTED = "weighted"
    LINKED = "linked"
    UNIQUE = "unique"


class RelationshipType(StrEnum):
    """Kinds of cross-table relationships."""

    PARENT_CHILD = "parent_child"
    CROSS_REFERENCE = "cross_reference"
    CONDITIONAL_CHAIN = "conditional_chain"


# =============================================================================
# Modifiers
# =============================================================================


class ConditionalWeight(BaseModel):
    """A weight that applies while its condition holds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    condition: str = Field(min_length=1, description="Expression enabling this weight")
    weight: Annotated[float, Field(ge=0, description="Weight while the condition holds")]


class ConditionalModifier(BaseModel):
    """Drops the entry from a roll while its condition is false."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["conditional"] = "conditional"
    condition: str = Field(min_length=1, description="Eligibility expression")


class WeightedModifier(BaseModel):
    """Overrides the default weight of 1.

    Attributes:
        weight: Base weight, used when no conditional weight matches.
        conditional_weights: Weights checked in order; the first whose
            condition is true replaces the base weight.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["weighted"] = "weighted"
    weight: Annotated[float, Field(ge=0, description="Base weight")] = 1
    conditional_weights: list[ConditionalWeight] = Field(default_factory=list)


class LinkedModifier(BaseModel):
    """Marks the entry as depending on another table."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["linked"] = "linked"
    dependency: str = Field(min_length=1, description="Name of the linked table")


class UniqueModifier(BaseModel):
    """Marks the entry for consumption tracking."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["unique"] = "unique"


TableModifier = Annotated[
    ConditionalModifier | WeightedModifier | LinkedModifier | UniqueModifier,
    Field(discriminator="type"),
]


# =============================================================================
# Entries
# =============================================================================


class EntryMetadata(BaseModel):
    """Searchable metadata attached to an entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tags: set[str] = Field(default_factory=set, description="Free-form tags")
    category: str | None = Field(default=None, description="Entry category")
    rarity: str | None = Field(default=None, description="Entry rarity")

    @field_serializer("tags")
    def _serialize_tags(self, tags: set[str]) -> list[str]:
        return sorted(tags)


class TableEntry(BaseModel):
    """One row of a random table.

    Bounds may be integers or numeric strings. A string bound is read as a
    number for ordinary rolls and as an offset from the difficulty class
    when rolling against a DC. Absent bounds mean the entry is matched by
    weight only.

    Attributes:
        min: Lowest roll selecting this entry, or None.
        max: Highest roll selecting this entry, or None.
        description: Static text, or a zero-argument callable producing it.
        modifiers: Ordered entry modifiers.
        metadata: Optional tags, category and rarity.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    min: int | str | None = Field(default=None, description="Lower bound")
    max: int | str | None = Field(default=None, description="Upper bound")
    description: str | Callable[[], str] = Field(description="Entry text or generator")
    modifiers: list[TableModifier] = Field(default_factory=list)
    metadata: EntryMetadata | None = Field(default=None)

    @field_validator("min", "max", mode="before")
    @classmethod
    def validate_bound(cls, value: Any) -> int | str | None:
        """Normalize a range bound.

        Args:
            value: Raw bound value.

        Returns:
            An int, a numeric string, or None for a blank bound.

        Raises:
            ValueError: If a string bound is not numeric.
        """
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            try:
                int(stripped)
            except ValueError as exc:
                raise ValueError(f"Bound must be numeric, got {value!r}") from exc
            return stripped
        return value

    @field_serializer("description")
    def _serialize_description(self, description: str | Callable[[], str]) -> str:
        # Generators are materialized; a function value is never persisted
        return description if isinstance(description, str) else str(description())

    @property
    def is_generated(self) -> bool:
        """Whether the description is produced by a callable."""
        return not isinstance(self.description, str)

    @property
    def has_range(self) -> bool:
        """Whether either bound is declared."""
        return self.min is not None or self.max is not None

    def text(self) -> str:
        """Resolve the entry description.

        Returns:
            The static text, or the output of the generator.
        """
        if isinstance(self.description, str):
            return self.description
        return str(self.description())

    def consumption_value(self) -> str:
        """Value recorded when the entry is consumed.

        Static entries record their text. Generated entries record their
        generator, so every output of one generator counts as the same entry.
        """
        if isinstance(self.description, str):
            return self.description
        generator = self.description
        name = getattr(generator, "__qualname__", type(generator).__qualname__)
        code = getattr(generator, "__code__", None)
        line = f":{code.co_firstlineno}" if code is not None else ""
        module = getattr(generator, "__module__", None) or type(generator).__module__
        return f"<generated:{module}.{name}{line}>"

    def static_text(self) -> str:
        """Return the description without invoking a generator."""
        return self.description if isinstance(self.description, str) else ""

    def entry_id(self, text: str | None = None) -> str:
        """Short stable identifier derived from the entry text."""
        source = self.text() if text is None else text
        return hashlib.sha1(source.encode("utf-8")).hexdigest()[:8]

    def bounds(self, dc: int | None = None) -> tuple[int | None, int | None]:
        """Resolve the bounds to integers.

        Args:
            dc: Difficulty class that string bounds are offsets from.

        Returns:
            Tuple of (low, high); either may be None.
        """
        return _resolve_bound(self.min, dc), _resolve_bound(self.max, dc)

    def matches(self, value: float, dc: int | None = None) -> bool:
        """Check whether a roll falls inside this entry's range.

        An entry with no bounds never matches by range; a single bound is
        open-ended on the other side.

        Args:
            value: The (adjusted) roll.
            dc: Optional difficulty class for offset bounds.

        Returns:
            True if the roll selects this entry.
        """
        low, high = self.bounds(dc)
        if low is None and high is None:
            return False
        if low is not None and value < low:
            return False
        return not (high is not None and value > high)

    def find_modifier(self, kind: ModifierType) -> Any | None:
        """Return the first modifier of a kind, if any."""
        for modifier in self.modifiers:
            if modifier.type == kind:
                return modifier
        return None

    def has_modifier(self, kind: ModifierType) -> bool:
        """Check whether the entry carries a modifier of a kind."""
        return self.find_modifier(kind) is not None


def _resolve_bound(bound: int | str | None, dc: int | None) -> int | None:
    if bound is None:
        return None
    if isinstance(bound, str):
        return int(bound) + (dc or 0)
    return bound


# =============================================================================
# Relationships & Tables
# =============================================================================


class TableRelationship(BaseModel):
    """A declared link from one table to another.

    Attributes:
        source_table: Table declaring the link.
        target_table: Table rolled when the link triggers.
        type: How the link triggers when it has no condition.
        condition: Optional expression gating the link.
        parameters: Extra variables injected into the linked roll.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_table: str = Field(default="", description="Declaring table")
    target_table: str = Field(min_length=1, description="Linked table")
    type: RelationshipType = Field(default=RelationshipType.PARENT_CHILD)
    condition: str | None = Field(default=None, description="Trigger expression")
    parameters: dict[str, Any] = Field(default_factory=dict)


class RandomTable(BaseModel):
    """A named collection of entries.

    Attributes:
        name: Unique, case-insensitive table name.
        description: Human-readable description.
        dice_formula: Dice notation used by classic formula rolls.
        entries: Ordered table entries.
        consumable: Whether drawn values are excluded until exhausted.
        relationships: Links followed after an advanced roll.
        default_roll_options: Options applied before per-call overrides.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, max_length=200, description="Table name")
    description: str = Field(default="", description="Table description")
    dice_formula: str = Field(default="1d100", min_length=1, description="Dice notation")
    entries: list[TableEntry] = Field(default_factory=list, description="Table entries")
    consumable: bool = Field(default=False, description="Avoid repeats until exhausted")
    relationships: list[TableRelationship] = Field(default_factory=list)
    default_roll_options: AdvancedRollOptions | None = Field(default=None)

    @property
    def key(self) -> str:
        """Case-insensitive lookup key."""
        return self.name.lower()

    @property
    def enhanced(self) -> bool:
        """Whether any advanced feature is present."""
        if self.relationships or self.default_roll_options is not None:
            return True
        return any(entry.modifiers or entry.metadata for entry in self.entries)


__all__ = [
    # Enumerations
    "ModifierType",
    "RelationshipType",
    # Modifiers
    "ConditionalWeight",
    "ConditionalModifier",
    "WeightedModifier",
    "LinkedModifier",
    "UniqueModifier",
    "TableModifier",
    # Entries
    "EntryMetadata",
    "TableEntry",
    # Tables
    "TableRelationship",
    "RandomTable",
]
