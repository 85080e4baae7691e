"""Registry of built-in and custom tables.

Lookup is case-insensitive and tries, in order: the exact key among
built-ins, a case-insensitive scan of built-ins (by key or name), the exact
key among custom tables, then a case-insensitive scan of custom tables.
Custom tables come from the host's persistence layer and change only
through the explicit add/remove operations here.

Example:
    >>> registry = TableRegistry()
    >>> registry.find("WEATHER").name
    'Weather'
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from enum import StrEnum

from story_tables.core.exceptions import TableNotFoundError
from story_tables.core.logging import get_logger
from story_tables.data.builtin_tables import BUILTIN_TABLES
from story_tables.models.state import TableUsage
from story_tables.models.tables import RandomTable


logger = get_logger(__name__)


class UsageOrder(StrEnum):
    """Orderings for listing custom tables by usage."""

    MOST_USED = "most_used"
    LEAST_USED = "least_used"
    RECENTLY_USED = "recently_used"
    NEVER_USED = "never_used"


class TableRegistry:
    """Holds named table definitions.

    Attributes:
        on_change: Called with a table name whenever a custom table is
            added, replaced or removed.
    """

    def __init__(
        self,
        custom_tables: Mapping[str, RandomTable] | None = None,
        *,
        builtin_tables: Mapping[str, RandomTable] | None = None,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            custom_tables: Host-supplied tables keyed by lookup key.
            builtin_tables: Built-in tables; defaults to the shipped set.
            on_change: Change notification hook.
        """
        self._builtin: dict[str, RandomTable] = dict(
            BUILTIN_TABLES if builtin_tables is None else builtin_tables
        )
        self._custom: dict[str, RandomTable] = dict(custom_tables or {})
        self._usage: dict[str, TableUsage] = {}
        self._lock = threading.RLock()
        self.on_change = on_change

    # =========================================================================
    # Lookup
    # =========================================================================

    @staticmethod
    def _scan(tables: Mapping[str, RandomTable], name: str) -> RandomTable | None:
        if name in tables:
            return tables[name]
        lowered = name.lower()
        for key, table in tables.items():
            if key.lower() == lowered or table.name.lower() == lowered:
                return table
        return None

    def find(self, name: str) -> RandomTable | None:
        """Look up a table by name.

        Args:
            name: Table key or name, in any case.

        Returns:
            The table, or None if nothing matches.
        """
        name = name.strip()
        with self._lock:
            table = self._scan(self._builtin, name) or self._scan(self._custom, name)
        if table is None:
            logger.info("Table not found", table=name)
        return table

    def get(self, name: str) -> RandomTable:
        """Look up a table that must exist.

        Raises:
            TableNotFoundError: If nothing matches.
        """
        table = self.find(name)
        if table is None:
            raise TableNotFoundError(f"Table '{name}' not found", table_name=name)
        return table

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.find(name) is not None

    def __len__(self) -> int:
        return len(self._builtin) + len(self._custom)

    def names(self) -> list[str]:
        """Names of every built-in and custom table."""
        with self._lock:
            return [t.name for t in self._builtin.values()] + [
                t.name for t in self._custom.values()
            ]

    def builtin_tables(self) -> dict[str, RandomTable]:
        """A copy of the built-in tables."""
        return dict(self._builtin)

    def custom_tables(self) -> dict[str, RandomTable]:
        """A copy of the custom tables."""
        with self._lock:
            return dict(self._custom)

    def search(self, query: str) -> list[RandomTable]:
        """Find tables whose name, description or static entry text contains a query.

        Args:
            query: Case-insensitive search text; blank returns every table.

        Returns:
            Matching tables, built-ins first.
        """
        lowered = query.strip().lower()
        with self._lock:
            tables = [*self._builtin.values(), *self._custom.values()]
        if not lowered:
            return tables
        matches = []
        for table in tables:
            haystack = " ".join(
                [table.name, table.description, *(e.static_text() for e in table.entries)]
            ).lower()
            if lowered in haystack:
                matches.append(table)
        return matches

    # =========================================================================
    # Custom Tables
    # =========================================================================

    def _custom_key(self, name: str) -> str | None:
        lowered = name.lower()
        for key, table in self._custom.items():
            if key.lower() == lowered or table.name.lower() == lowered:
                return key
        return None

    def add(self, tables: RandomTable | Iterable[RandomTable]) -> None:
        """Add or replace custom tables, keyed by their name.

        Args:
            tables: A table or several tables.
        """
        batch = [tables] if isinstance(tables, RandomTable) else list(tables)
        with self._lock:
            for table in batch:
                existing = self._custom_key(table.name)
                if existing is not None and existing != table.name:
                    del self._custom[existing]
                self._custom[table.name] = table
                self._usage.setdefault(table.name, TableUsage())
        for table in batch:
            logger.info("Custom table added", table=table.name, entries=len(table.entries))
            self._notify(table.name)

    def remove(self, name: str) -> bool:
        """Remove a custom table.

        Returns:
            True if a table was removed.
        """
        with self._lock:
            key = self._custom_key(name)
            if key is None:
                return False
            table = self._custom.pop(key)
            self._usage.pop(table.name, None)
        logger.info("Custom table removed", table=table.name)
        self._notify(table.name)
        return True

    def replace_custom(self, tables: Iterable[RandomTable]) -> None:
        """Replace every custom table, as when restoring a snapshot."""
        with self._lock:
            previous = list(self._custom)
            self._custom = {table.name: table for table in tables}
        for name in {*previous, *self._custom}:
            self._notify(name)

    def duplicate(self, name: str, new_name: str | None = None) -> RandomTable:
        """Copy a table under a unique name.

        Args:
            name: Table to copy.
            new_name: Requested name; defaults to ``"<name> (Copy)"``. A
                counter is appended until the name is unused.

        Returns:
            The new custom table.

        Raises:
            TableNotFoundError: If the source table does not exist.
        """
        source = self.get(name)
        base = new_name or f"{source.name} (Copy)"
        final = base
        counter = 1
        while self._scan(self._builtin, final) or self._custom_key(final):
            final = f"{base} {counter}"
            counter += 1

        copy = source.model_copy(
            update={
                "name": final,
                "relationships": [
                    r.model_copy(update={"source_table": final}) for r in source.relationships
                ],
            },
            deep=True,
        )
        self.add(copy)
        return copy

    # =========================================================================
    # Usage
    # =========================================================================

    def record_usage(self, name: str) -> None:
        """Count a use of a table."""
        with self._lock:
            usage = self._usage.get(name, TableUsage())
            self._usage[name] = usage.model_copy(
                update={"use_count": usage.use_count + 1, "last_used": datetime.now()}
            )

    def usage(self, name: str) -> TableUsage:
        """Use count and last-used time of a table."""
        with self._lock:
            return self._usage.get(name, TableUsage())

    def by_usage(self, order: UsageOrder) -> list[RandomTable]:
        """List custom tables ordered or filtered by usage.

        Args:
            order: Ordering to apply.

        Returns:
            Custom tables in the requested order.
        """
        with self._lock:
            tables = list(self._custom.values())
            usage = dict(self._usage)

        def count(table: RandomTable) -> int:
            return usage.get(table.name, TableUsage()).use_count

        if order == UsageOrder.MOST_USED:
            return sorted(tables, key=count, reverse=True)
        if order == UsageOrder.LEAST_USED:
            return sorted(tables, key=count)
        if order == UsageOrder.RECENTLY_USED:
            return sorted(
                tables,
                key=lambda t: usage.get(t.name, TableUsage()).last_used or datetime.min,
                reverse=True,
            )
        return [table for table in tables if count(table) == 0]

    def _notify(self, name: str) -> None:
        if self.on_change is not None:
            self.on_change(name)


__all__ = [
    "UsageOrder",
    "TableRegistry",
]
