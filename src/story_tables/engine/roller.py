"""Weighted roll engine for advanced table rolls.

A roll filters entries by their conditions, weighs them, produces a raw
d100 with the requested strategy, adjusts it, and selects an entry.

Selection runs in one of two modes. Weight mode applies when any eligible
entry carries a Weighted modifier, or when no entry declares a range: the
adjusted roll is scaled into cumulative-weight space (``roll / 100 *
total``) and the first entry whose running weight reaches it wins. Range
mode applies otherwise, and also when every weight is zero: the first
entry whose ``min``/``max`` contain the roll wins, defaulting to the first
entry.

Errors:
    - A table with no entries raises EmptyTableError.
    - A table whose entries are all filtered out raises
      NoEligibleEntriesError; the engine never invents content.
    - Any other failure is logged and degrades to a uniform roll over the
      raw table, flagged with ``fallback=True``.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from story_tables.core.constants import DIE_SIZE, LINKED_MARKER
from story_tables.core.exceptions import EmptyTableError, NoEligibleEntriesError
from story_tables.core.logging import get_logger
from story_tables.engine.consumption import ConsumptionTracker
from story_tables.engine.dice import DiceRoller
from story_tables.engine.expressions import ConditionalEvaluator
from story_tables.engine.performance import PerformanceLayer
from story_tables.models.options import AdvancedRollOptions, RollType
from story_tables.models.rolls import RollContext, TableResult
from story_tables.models.tables import (
    ConditionalModifier,
    LinkedModifier,
    ModifierType,
    RandomTable,
    TableEntry,
    WeightedModifier,
)


if TYPE_CHECKING:
    from story_tables.engine.relationships import RelationshipResolver


logger = get_logger(__name__)


def select_entry(
    entries: Sequence[TableEntry],
    weights: Sequence[float],
    roll: float,
) -> TableEntry:
    """Select an entry for an adjusted roll.

    Args:
        entries: Eligible entries in table order.
        weights: Weight of each entry.
        roll: Adjusted roll.

    Returns:
        The selected entry.
    """
    weight_mode = any(e.has_modifier(ModifierType.WEIGHTED) for e in entries) or not any(
        e.has_range for e in entries
    )
    total = sum(weights)
    if weight_mode and total > 0:
        target = roll / DIE_SIZE * total
        cumulative = 0.0
        last_weighted = entries[0]
        for entry, weight in zip(entries, weights, strict=True):
            if weight <= 0:
                continue
            last_weighted = entry
            cumulative += weight
            if cumulative >= target:
                return entry
        return last_weighted

    for entry in entries:
        if entry.matches(roll):
            return entry
    return entries[0]


class AdvancedTableRoller:
    """Rolls on tables with conditions, weights and roll strategies.

    Attributes:
        relationships: Resolver for declared and runtime relationships; attached by
            the engine once both objects exist.
        cache_results: Whether results are cached and served from cache.
    """

    def __init__(
        self,
        evaluator: ConditionalEvaluator,
        dice: DiceRoller,
        tracker: ConsumptionTracker,
        performance: PerformanceLayer,
        *,
        relationships: RelationshipResolver | None = None,
        cache_results: bool = True,
    ) -> None:
        """Initialize the roller.

        Args:
            evaluator: Conditional expression evaluator.
            dice: Random source.
            tracker: Consumption records for unique entries.
            performance: Caches and metrics.
            relationships: Optional relationship resolver.
            cache_results: Whether results are cached.
        """
        self._evaluator = evaluator
        self._dice = dice
        self._tracker = tracker
        self._performance = performance
        self.relationships = relationships
        self.cache_results = cache_results

    # =========================================================================
    # Public API
    # =========================================================================

    def roll_with_modifiers(
        self,
        table: RandomTable,
        context: RollContext | None = None,
        options: AdvancedRollOptions | None = None,
    ) -> TableResult:
        """Roll on a table with every advanced feature.

        An identical (table, variables, story) roll within the cache
        lifetime returns the cached result.

        Args:
            table: Table to roll on.
            context: Roll context; defaults to an empty one.
            options: Per-call options over the table defaults.

        Returns:
            The roll result.

        Raises:
            EmptyTableError: If the table has no entries.
            NoEligibleEntriesError: If every entry was filtered out.
        """
        context = context or RollContext()
        started = time.perf_counter()

        key = None
        if self.cache_results:
            key = self._performance.result_key(table, context)
            cached = self._performance.get_result(key)
            if cached is not None:
                logger.debug("Roll served from cache", table=table.name)
                return cached

        result = self.roll_uncached(table, context, options)

        if key is not None:
            self._performance.cache_result(key, result)
        self._performance.record_roll_time((time.perf_counter() - started) * 1000)
        return result

    def roll_uncached(
        self,
        table: RandomTable,
        context: RollContext | None = None,
        options: AdvancedRollOptions | None = None,
    ) -> TableResult:
        """Roll without consulting or filling the result cache.

        Raises:
            EmptyTableError: If the table has no entries.
            NoEligibleEntriesError: If every entry was filtered out.
        """
        context = context or RollContext()
        if not table.entries:
            raise EmptyTableError(f"Table '{table.name}' has no entries", table_name=table.name)

        try:
            return self._roll(table, context, options)
        except NoEligibleEntriesError:
            raise
        except Exception:
            logger.exception("Advanced roll failed; using basic roll", table=table.name)
            return self.roll_basic(table, context, fallback=True)

    def roll_basic(
        self,
        table: RandomTable,
        context: RollContext | None = None,
        *,
        fallback: bool = False,
    ) -> TableResult:
        """Uniform roll over the raw table, ignoring modifiers.

        Args:
            table: Table to roll on.
            context: Context recorded on the result.
            fallback: Mark the result as a degraded roll.

        Returns:
            The roll result; ``roll`` is the 1-based entry position.

        Raises:
            EmptyTableError: If the table has no entries.
        """
        if not table.entries:
            raise EmptyTableError(f"Table '{table.name}' has no entries", table_name=table.name)

        roll = self._dice.randint(1, len(table.entries))
        entry = table.entries[roll - 1]
        text = entry.text()
        return TableResult(
            description=text,
            roll=roll,
            adjusted_roll=roll,
            table_id=table.name,
            entry_id=entry.entry_id(text),
            metadata=entry.metadata,
            context=context,
            fallback=fallback,
        )

    def roll_by_formula(self, table: RandomTable, *, dc: int | None = None) -> TableResult:
        """Roll the table's dice formula and select by range.

        Numeric-string bounds are offsets from ``dc`` when one is given,
        so a single table can express results relative to a difficulty.

        Args:
            table: Table to roll on.
            dc: Optional difficulty class.

        Returns:
            The roll result.

        Raises:
            EmptyTableError: If the table has no entries.
            DiceRollError: If the formula is invalid.
        """
        if not table.entries:
            raise EmptyTableError(f"Table '{table.name}' has no entries", table_name=table.name)

        total = self._dice.roll(table.dice_formula).total
        entry = next((e for e in table.entries if e.matches(total, dc)), table.entries[0])
        text = entry.text()
        logger.debug("Formula roll", table=table.name, formula=table.dice_formula, total=total)
        return TableResult(
            description=text,
            roll=total,
            adjusted_roll=total,
            table_id=table.name,
            entry_id=entry.entry_id(text),
            metadata=entry.metadata,
        )

    # =========================================================================
    # Roll Steps
    # =========================================================================

    def _roll(
        self,
        table: RandomTable,
        context: RollContext,
        options: AdvancedRollOptions | None,
    ) -> TableResult:
        merged = AdvancedRollOptions().merged_with(table.default_roll_options).merged_with(options)
        scope = context.scope()

        eligible = [entry for entry in table.entries if self._is_eligible(entry, scope)]
        if not eligible:
            raise NoEligibleEntriesError(
                f"No eligible entries in table '{table.name}'",
                table_name=table.name,
            )
        eligible = self._exclude_consumed(table, context.story_id, eligible)

        weights = [self._weight(entry, scope) for entry in eligible]
        raw = self._raw_roll(merged, scope)
        adjusted = merged.modifiers.apply(raw)
        entry = select_entry(eligible, weights, adjusted)

        text = entry.text()
        description = text
        linked_table = None
        linked = entry.find_modifier(ModifierType.LINKED)
        if isinstance(linked, LinkedModifier):
            linked_table = linked.dependency
            description = f"{text} {LINKED_MARKER.format(table=linked_table)}"

        if entry.has_modifier(ModifierType.UNIQUE):
            self._tracker.mark_consumed(table.name, context.story_id, entry.consumption_value())

        result = TableResult(
            description=description,
            roll=raw,
            adjusted_roll=adjusted,
            table_id=table.name,
            entry_id=entry.entry_id(text),
            metadata=entry.metadata,
            roll_options=merged,
            context=context,
            linked_table=linked_table,
        )
        logger.debug(
            "Table rolled",
            table=table.name,
            roll=raw,
            adjusted=adjusted,
            entry_id=result.entry_id,
        )

        if self.relationships is not None:
            result = self.relationships.resolve(result, table, context)
        return result

    def _is_eligible(self, entry: TableEntry, scope: Mapping[str, Any]) -> bool:
        for modifier in entry.modifiers:
            if isinstance(modifier, ConditionalModifier):
                if not self._evaluator.evaluate(modifier.condition, scope).result:
                    return False
        return True

    def _exclude_consumed(
        self,
        table: RandomTable,
        story_id: str,
        entries: list[TableEntry],
    ) -> list[TableEntry]:
        if not any(e.has_modifier(ModifierType.UNIQUE) for e in entries):
            return entries
        remaining = [
            entry
            for entry in entries
            if not entry.has_modifier(ModifierType.UNIQUE)
            or self._tracker.is_available(table.name, story_id, entry.consumption_value())
        ]
        if remaining:
            return remaining
        self._tracker.reset(table.name, story_id)
        return entries

    def _weight(self, entry: TableEntry, scope: Mapping[str, Any]) -> float:
        weighted = entry.find_modifier(ModifierType.WEIGHTED)
        if not isinstance(weighted, WeightedModifier):
            return 1.0
        for conditional in weighted.conditional_weights:
            if self._evaluator.evaluate(conditional.condition, scope).result:
                return conditional.weight
        return weighted.weight

    def _raw_roll(self, options: AdvancedRollOptions, scope: Mapping[str, Any]) -> int:
        if options.roll_type != RollType.REROLL:
            return self._dice.roll_d100(
                options.roll_type, advantage_count=options.advantage_count
            ).value

        value = self._dice.d100()
        if not options.reroll_condition:
            return value
        rerolls = 0
        while rerolls < options.max_rerolls:
            check = {**scope, "roll_value": value, "reroll_count": rerolls}
            if not self._evaluator.evaluate(options.reroll_condition, check).result:
                break
            value = self._dice.d100()
            rerolls += 1
        return value


__all__ = [
    "AdvancedTableRoller",
    "select_entry",
]
