"""Integration tests for snapshot persistence.

Tests engine state save/load and state integrity.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from story_tables.core.exceptions import StorageError
from story_tables.engine.table_engine import TableEngine
from story_tables.models import EngineSnapshot, RandomTable, TableEntry
from story_tables.storage import SnapshotDatabase


@pytest.fixture
def db(temp_db_path: Path) -> SnapshotDatabase:
    """Create a snapshot database in a temporary directory."""
    return SnapshotDatabase(temp_db_path)


class TestSnapshotDatabase:
    """Test snapshot storage operations."""

    def test_save_and_load(self, db: SnapshotDatabase, range_table: RandomTable) -> None:
        """Save a snapshot and load it back."""
        snapshot = EngineSnapshot(tables=[range_table])

        record = db.save_snapshot("campaign", snapshot)
        loaded = db.load_snapshot("campaign")

        assert record.table_count == 1
        assert loaded is not None
        assert loaded.tables == [range_table]

    def test_load_missing(self, db: SnapshotDatabase) -> None:
        """Loading an unknown snapshot returns None."""
        assert db.load_snapshot("nope") is None

    def test_save_replaces_by_name(self, db: SnapshotDatabase, range_table: RandomTable) -> None:
        """Saving under an existing name updates it in place."""
        first = db.save_snapshot("campaign", EngineSnapshot())
        second = db.save_snapshot("campaign", EngineSnapshot(tables=[range_table]))

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert db.get_snapshot_count() == 1
        assert db.list_snapshots()[0].table_count == 1

    def test_list_and_delete(self, db: SnapshotDatabase) -> None:
        """List snapshots and delete one."""
        db.save_snapshot("one", EngineSnapshot())
        db.save_snapshot("two", EngineSnapshot())

        assert {r.name for r in db.list_snapshots()} == {"one", "two"}
        assert db.delete_snapshot("one") is True
        assert db.delete_snapshot("one") is False
        assert db.get_snapshot_count() == 1

    def test_corrupt_snapshot(self, db: SnapshotDatabase, temp_db_path: Path) -> None:
        """A corrupt stored snapshot raises StorageError."""
        db.save_snapshot("broken", EngineSnapshot())
        with sqlite3.connect(temp_db_path) as conn:
            conn.execute("UPDATE snapshots SET snapshot_json = '{\"tables\": 5}'")

        with pytest.raises(StorageError):
            db.load_snapshot("broken")


class TestEngineRestore:
    """Test restoring engine state from storage."""

    def test_round_trip_preserves_state(self, db: SnapshotDatabase) -> None:
        """Custom tables and consumption survive a save and restore."""
        engine = TableEngine(seed=1)
        engine.add_tables(RandomTable(name="Mood", entries=[TableEntry(description="Calm")]))
        drawn = [engine.resolve("{npc_name}", story_id="saga") for _ in range(3)]
        db.save_snapshot("saga", engine.snapshot())

        restored = TableEngine(seed=2)
        snapshot = db.load_snapshot("saga")
        assert snapshot is not None
        restored.restore(snapshot)

        assert restored.find_table("mood") is not None
        assert restored.consumed_items("npc_name", "saga") == drawn
        assert restored.resolve("{npc_name}", story_id="saga") not in drawn

    def test_restore_replaces_custom_tables(self, engine: TableEngine) -> None:
        """Restoring drops custom tables absent from the snapshot."""
        engine.add_tables(RandomTable(name="Mood", entries=[TableEntry(description="Calm")]))

        engine.restore(EngineSnapshot())

        assert engine.find_table("mood") is None
        assert engine.find_table("weather") is not None
