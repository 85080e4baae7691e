"""Engine facade owning every table component for one host session.

A TableEngine wires the registry, evaluator, dice, consumption tracker,
caches and resolvers together. Nothing is process-global: two engines never
share caches or consumption records.

Example:
    >>> engine = TableEngine(seed=7)
    >>> result = engine.roll("weather", {"current_season": "summer"})
    >>> result.table_id
    'Weather'
    >>> engine.resolve("A {adjective} {animal}")  # doctest: +SKIP
    'A rusty owl'
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping
from typing import Any

from story_tables.core.config import Settings, get_settings
from story_tables.core.exceptions import TableNotFoundError
from story_tables.core.logging import get_logger, story_scope
from story_tables.engine.consumption import ConsumptionTracker
from story_tables.engine.dice import DiceRoller
from story_tables.engine.expressions import ConditionalEvaluator
from story_tables.engine.performance import PerformanceLayer
from story_tables.engine.placeholders import PlaceholderResolver
from story_tables.engine.registry import TableRegistry
from story_tables.engine.relationships import RelationshipResolver
from story_tables.engine.roller import AdvancedTableRoller
from story_tables.engine.validation import parse_table_backup, validate_table
from story_tables.models.options import AdvancedRollOptions
from story_tables.models.rolls import RollContext, TableResult
from story_tables.models.state import (
    CacheStatistics,
    EngineSnapshot,
    PerformanceMetrics,
    TableValidationResult,
)
from story_tables.models.tables import RandomTable, TableEntry


logger = get_logger(__name__)


class TableEngine:
    """Procedural table engine for one host session.

    Attributes:
        settings: Settings the engine was built from.
        registry: Built-in and custom tables.
        evaluator: Conditional expression evaluator.
        dice: Random source.
        tracker: Consumption records.
        performance: Caches and metrics.
        roller: Advanced roll engine.
        relationships: Cross-table relationship resolver.
        placeholders: Template resolver.
    """

    def __init__(
        self,
        custom_tables: Mapping[str, RandomTable] | None = None,
        *,
        settings: Settings | None = None,
        seed: int | None = None,
        rng: random.Random | None = None,
        builtin_tables: Mapping[str, RandomTable] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            custom_tables: Host-supplied tables keyed by lookup key.
            settings: Settings to use; defaults to the application settings.
            seed: Random seed; overrides the configured one.
            rng: Random source shared by every component.
            builtin_tables: Built-in tables; defaults to the shipped set.
        """
        self.settings = settings or get_settings()
        engine_settings = self.settings.engine
        cache_settings = self.settings.cache

        if rng is None:
            rng = random.Random(seed if seed is not None else engine_settings.seed)

        self.performance = PerformanceLayer(
            ttl_seconds=cache_settings.ttl_seconds,
            max_size=cache_settings.max_size,
            eviction_ratio=cache_settings.eviction_ratio,
        )
        self.registry = TableRegistry(
            custom_tables,
            builtin_tables=builtin_tables,
            on_change=self.performance.invalidate_table,
        )
        self.evaluator = ConditionalEvaluator(
            rng=rng,
            max_expression_length=self.settings.evaluator.max_expression_length,
            parse_cache_size=self.settings.evaluator.parse_cache_size,
            on_evaluated=self.performance.record_evaluation_time,
        )
        self.dice = DiceRoller(rng=rng, max_explosions=engine_settings.max_explosions)
        self.tracker = ConsumptionTracker()
        self.roller = AdvancedTableRoller(
            self.evaluator,
            self.dice,
            self.tracker,
            self.performance,
            cache_results=cache_settings.enabled,
        )
        self.relationships = RelationshipResolver(
            self.registry,
            self.evaluator,
            self.roller,
            max_depth=engine_settings.max_depth,
            lookup=self.find_table,
        )
        self.roller.relationships = self.relationships
        self.placeholders = PlaceholderResolver(
            self.registry,
            self.tracker,
            self.dice,
            max_depth=engine_settings.max_depth,
            default_story_id=engine_settings.default_story_id,
            lookup=self.find_table,
        )
        logger.info(
            "Table engine initialized",
            builtin_tables=len(self.registry.builtin_tables()),
            custom_tables=len(self.registry.custom_tables()),
            cache_enabled=cache_settings.enabled,
        )

    @property
    def default_story_id(self) -> str:
        """Story used when a call names none."""
        return self.settings.engine.default_story_id

    # =========================================================================
    # Tables
    # =========================================================================

    def find_table(self, name: str) -> RandomTable | None:
        """Look up a table by name through the table cache, or None."""
        cached = self.performance.get_table(name.strip())
        if cached is not None:
            return cached
        table = self.registry.find(name)
        if table is not None:
            self.performance.cache_table(table)
        return table

    def get_table(self, name: str) -> RandomTable:
        """Look up a table that must exist.

        Raises:
            TableNotFoundError: If nothing matches.
        """
        table = self.find_table(name)
        if table is None:
            raise TableNotFoundError(f"Table '{name}' not found", table_name=name)
        return table

    def add_tables(self, tables: RandomTable | Iterable[RandomTable]) -> None:
        """Add or replace custom tables."""
        self.registry.add(tables)

    def remove_table(self, name: str) -> bool:
        """Remove a custom table."""
        return self.registry.remove(name)

    def search_tables(self, query: str) -> list[RandomTable]:
        """Tables whose name, description or entries mention a query."""
        return self.registry.search(query)

    def search_entries(
        self,
        table_name: str,
        query: str = "",
        *,
        tags: Iterable[str] | None = None,
        category: str | None = None,
        rarity: str | None = None,
    ) -> list[TableEntry]:
        """Search one table's entries through its index.

        Raises:
            TableNotFoundError: If the table does not exist.
        """
        table = self.get_table(table_name)
        return self.performance.search(
            table, query, tags=tags, category=category, rarity=rarity
        )

    def validate_table(self, table: RandomTable) -> TableValidationResult:
        """Validate a table against the current registry."""
        return validate_table(table, self.evaluator, self.registry)

    def import_tables(self, data: Any) -> tuple[int, list[str]]:
        """Add tables from a decoded backup.

        Tables that fail to parse or validate are skipped and reported.

        Args:
            data: Decoded JSON backup.

        Returns:
            Tuple of (tables imported, error messages).
        """
        tables, errors = parse_table_backup(data)
        accepted: list[RandomTable] = []
        for table in tables:
            validation = validate_table(table, self.evaluator)
            if validation.is_valid:
                accepted.append(table)
            else:
                errors.append(f'Table "{table.name}": {"; ".join(validation.errors)}')
        if accepted:
            self.registry.add(accepted)
        logger.info("Tables imported", imported=len(accepted), rejected=len(errors))
        return len(accepted), errors

    # =========================================================================
    # Rolling
    # =========================================================================

    def _context(
        self,
        context: RollContext | Mapping[str, Any] | None,
        story_id: str | None,
    ) -> RollContext:
        if isinstance(context, RollContext):
            return context
        return RollContext(
            variables=dict(context or {}),
            story_id=story_id or self.default_story_id,
        )

    def roll(
        self,
        table_name: str,
        context: RollContext | Mapping[str, Any] | None = None,
        options: AdvancedRollOptions | None = None,
        *,
        story_id: str | None = None,
    ) -> TableResult:
        """Roll on a table by name.

        Args:
            table_name: Table to roll on.
            context: A RollContext, or plain variables.
            options: Per-call roll options.
            story_id: Story for plain-variable contexts.

        Returns:
            The roll result.

        Raises:
            TableNotFoundError: If the table does not exist.
            EmptyTableError: If the table has no entries.
            NoEligibleEntriesError: If every entry was filtered out.
        """
        table = self.get_table(table_name)
        roll_context = self._context(context, story_id)
        with story_scope(roll_context.story_id):
            result = self.roller.roll_with_modifiers(table, roll_context, options)
        self.registry.record_usage(table.name)
        return result

    def roll_with_modifiers(
        self,
        table: RandomTable,
        context: RollContext | None = None,
        options: AdvancedRollOptions | None = None,
    ) -> TableResult:
        """Roll on a table object with every advanced feature."""
        return self.roller.roll_with_modifiers(table, context, options)

    def roll_by_formula(self, table_name: str, *, dc: int | None = None) -> TableResult:
        """Roll a table's dice formula and select by range."""
        table = self.get_table(table_name)
        result = self.roller.roll_by_formula(table, dc=dc)
        self.registry.record_usage(table.name)
        return result

    def resolve(self, text: str, story_id: str | None = None) -> str:
        """Expand every placeholder in a template."""
        with story_scope(story_id or self.default_story_id):
            return self.placeholders.resolve(text, story_id=story_id)

    def reset_consumption(self, table: str | None = None, story_id: str | None = None) -> int:
        """Clear consumption for one table, or every table of a story."""
        return self.placeholders.reset_consumption(table, story_id)

    def consumed_items(self, table: str, story_id: str | None = None) -> list[str]:
        """Values a table has consumed for a story."""
        return self.placeholders.consumed_items(table, story_id)

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def metrics(self) -> PerformanceMetrics:
        """Read-only metrics snapshot."""
        return self.performance.metrics()

    def cache_stats(self) -> CacheStatistics:
        """Size and hit rate of each cache."""
        return self.performance.cache_stats()

    def reset_metrics(self) -> None:
        """Zero every metric."""
        self.performance.reset_metrics()

    def clear_caches(self) -> None:
        """Empty every cache."""
        self.performance.clear()

    async def preload(self, names: Iterable[str] | None = None) -> int:
        """Warm the table cache and indices.

        Args:
            names: Tables to preload; defaults to every table.

        Returns:
            Number of tables preloaded.
        """
        selected = self.registry.names() if names is None else list(names)
        tables = [t for t in (self.find_table(n) for n in selected) if t is not None]
        return await self.performance.preload_tables(tables)

    # =========================================================================
    # Persistence
    # =========================================================================

    def snapshot(self) -> EngineSnapshot:
        """Custom tables and consumption records, ready to persist."""
        return EngineSnapshot(
            tables=list(self.registry.custom_tables().values()),
            consumed=self.tracker.snapshot(),
        )

    def restore(self, snapshot: EngineSnapshot) -> None:
        """Replace custom tables and consumption records from a snapshot."""
        self.registry.replace_custom(snapshot.tables)
        self.tracker.restore(snapshot.consumed)
        self.performance.clear()
        logger.info(
            "Engine restored",
            tables=len(snapshot.tables),
            consumption_keys=len(snapshot.consumed),
        )


__all__ = [
    "TableEngine",
]
