"""Pydantic V2 schemas for roll contexts and results.

A RollContext is the variable environment a roll is evaluated against; a
TableResult is the immutable outcome of a roll. Derived contexts (deeper
relationship rolls, reroll checks) are copies, never in-place updates.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from story_tables.core.constants import DEFAULT_STORY_ID
from story_tables.models.options import AdvancedRollOptions
from story_tables.models.tables import EntryMetadata


class RollContext(BaseModel):
    """Variable environment for a roll.

    Attributes:
        variables: Caller-supplied variables for conditional expressions.
        story_id: Story the roll belongs to (scopes consumption).
        depth: Nesting depth of relationship rolls.
        previous_results: Prior results, most recent last.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    variables: dict[str, Any] = Field(default_factory=dict)
    story_id: str = Field(default=DEFAULT_STORY_ID, min_length=1)
    depth: int = Field(default=0, ge=0)
    previous_results: tuple[TableResult, ...] = Field(default=())

    @property
    def last_result(self) -> TableResult | None:
        """The most recent prior result, if any."""
        return self.previous_results[-1] if self.previous_results else None

    def scope(self) -> dict[str, Any]:
        """Build the expression scope for this context.

        Returns:
            The caller variables plus the engine-derived ``roll_count``,
            ``depth``, ``story_id``, ``last_result`` and ``last_table``.
        """
        last = self.last_result
        return {
            **self.variables,
            "roll_count": len(self.previous_results),
            "depth": self.depth,
            "story_id": self.story_id,
            "last_result": last.description if last else None,
            "last_table": last.table_id if last else None,
        }

    def with_variables(self, **extra: Any) -> RollContext:
        """Return a copy with additional variables."""
        return self.model_copy(update={"variables": {**self.variables, **extra}})

    def descend(self, result: TableResult, **extra: Any) -> RollContext:
        """Return a context one level deeper that remembers ``result``.

        Args:
            result: The result being followed.
            **extra: Variables injected into the deeper context.

        Returns:
            The derived context.
        """
        return self.model_copy(
            update={
                "variables": {**self.variables, **extra},
                "depth": self.depth + 1,
                "previous_results": (*self.previous_results, result),
            }
        )


class TableResult(BaseModel):
    """Outcome of a table roll.

    Attributes:
        description: Final resolved text.
        roll: Raw die value.
        adjusted_roll: Roll after bonus, multiplier and threshold.
        table_id: Name of the table rolled on.
        entry_id: Identifier of the selected entry.
        metadata: Metadata of the selected entry.
        roll_options: Effective (merged) roll options.
        context: Context the roll was made in.
        linked_table: Dependency named by a Linked modifier.
        linked_results: Results of triggered relationships.
        fallback: True when produced by the degraded basic roll.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    description: str
    roll: int
    adjusted_roll: float | None = None
    table_id: str
    entry_id: str | None = None
    metadata: EntryMetadata | None = None
    roll_options: AdvancedRollOptions | None = None
    context: RollContext | None = None
    linked_table: str | None = None
    linked_results: tuple[TableResult, ...] = ()
    fallback: bool = False

    def with_linked_results(self, results: list[TableResult]) -> TableResult:
        """Return a copy with relationship outcomes appended."""
        return self.model_copy(
            update={"linked_results": (*self.linked_results, *results)}
        )


class EvaluationResult(BaseModel):
    """Outcome of evaluating a conditional expression."""

    model_config = ConfigDict(frozen=True)

    result: bool
    error: str | None = None
    evaluation_time_ms: float = 0.0


class ExpressionValidation(BaseModel):
    """Outcome of validating a conditional expression."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    error: str | None = None


RollContext.model_rebuild()
TableResult.model_rebuild()


__all__ = [
    "RollContext",
    "TableResult",
    "EvaluationResult",
    "ExpressionValidation",
]
