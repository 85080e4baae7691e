"""Per-story consumption tracking for consumable tables and unique entries.

Records are keyed by ``lower(table) + "_" + story`` so that stories never
share a record. Writes to one key are atomic; different keys do not
contend. When every entry of a table has been consumed, the record is
cleared rather than pruned, and every entry becomes eligible again.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence

from story_tables.core.constants import DEFAULT_STORY_ID
from story_tables.core.logging import get_logger
from story_tables.models.state import ConsumedEntry
from story_tables.models.tables import TableEntry


logger = get_logger(__name__)


class ConsumptionTracker:
    """Tracks which values each (table, story) pair has produced."""

    def __init__(self, records: Mapping[str, ConsumedEntry] | None = None) -> None:
        """Initialize the tracker.

        Args:
            records: Previously saved records keyed by consumption key.
        """
        self._records: dict[str, ConsumedEntry] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        if records:
            self.restore(records)

    @staticmethod
    def key(table: str, story_id: str) -> str:
        """Consumption key for a table and story."""
        return f"{table.lower()}_{story_id}"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def mark_consumed(self, table: str, story_id: str, value: str) -> None:
        """Record that a table produced a value for a story.

        Args:
            table: Table name.
            story_id: Story the value was produced for.
            value: The produced description.
        """
        key = self.key(table, story_id)
        with self._lock_for(key):
            record = self._records.get(key)
            if record is None:
                with self._registry_lock:
                    record = self._records.setdefault(
                        key, ConsumedEntry(table_id=table, story_id=story_id)
                    )
            if value not in record.consumed_items:
                record.consumed_items.append(value)
        logger.debug("Entry consumed", table=table, story_id=story_id)

    def is_available(self, table: str, story_id: str, value: str) -> bool:
        """Check whether a value has not yet been produced for a story."""
        key = self.key(table, story_id)
        if key not in self._records:
            return True
        with self._lock_for(key):
            record = self._records.get(key)
            return record is None or value not in record.consumed_items

    def consumed(self, table: str, story_id: str) -> list[str]:
        """Values produced so far, in production order."""
        key = self.key(table, story_id)
        if key not in self._records:
            return []
        with self._lock_for(key):
            record = self._records.get(key)
            return list(record.consumed_items) if record else []

    def reset(self, table: str | None = None, story_id: str = DEFAULT_STORY_ID) -> int:
        """Clear consumption records.

        Args:
            table: Table to clear; None clears every table of the story.
            story_id: Story whose records are cleared.

        Returns:
            Number of records cleared.
        """
        if table is not None:
            keys = [self.key(table, story_id)]
        else:
            with self._registry_lock:
                keys = [k for k, r in self._records.items() if r.story_id == story_id]

        cleared = 0
        for key in keys:
            if key not in self._records:
                continue
            with self._lock_for(key), self._registry_lock:
                self._locks.pop(key, None)
                if self._records.pop(key, None) is not None:
                    cleared += 1
        if cleared:
            logger.info("Consumption reset", table=table, story_id=story_id, cleared=cleared)
        return cleared

    def available_entries(
        self,
        table: str,
        story_id: str,
        entries: Sequence[TableEntry],
    ) -> list[TableEntry]:
        """Restrict entries to those not yet consumed.

        If nothing is left, the record is cleared and every entry is
        returned.

        Args:
            table: Table name.
            story_id: Story being resolved.
            entries: Candidate entries.

        Returns:
            The unconsumed entries, or all entries after a reset.
        """
        key = self.key(table, story_id)
        if key not in self._records:
            return list(entries)
        with self._lock_for(key):
            record = self._records.get(key)
            if record is None or not record.consumed_items:
                return list(entries)
            consumed = set(record.consumed_items)
            available = [e for e in entries if e.consumption_value() not in consumed]
            if not available:
                with self._registry_lock:
                    self._records.pop(key, None)
                    self._locks.pop(key, None)
                logger.info(
                    "Consumable table exhausted; resetting", table=table, story_id=story_id
                )
                return list(entries)
            return available

    def snapshot(self) -> dict[str, ConsumedEntry]:
        """Copy of every record, keyed by consumption key."""
        with self._registry_lock:
            return {k: r.model_copy(deep=True) for k, r in self._records.items()}

    def restore(self, records: Mapping[str, ConsumedEntry]) -> None:
        """Replace every record with saved ones."""
        with self._registry_lock:
            self._records = {k: r.model_copy(deep=True) for k, r in records.items()}
            self._locks = {k: lock for k, lock in self._locks.items() if k in self._records}


__all__ = [
    "ConsumptionTracker",
]
