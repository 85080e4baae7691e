"""SQLite persistence for engine snapshots.

Provides persistent storage for named EngineSnapshots: the custom tables
and consumption records of a host session.

Storage location: ``STORY_TABLES_DATABASE_PATH`` (default
``data/story_tables.db``).
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Generator
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from story_tables.core.config import get_settings
from story_tables.core.exceptions import StorageError
from story_tables.core.logging import get_logger
from story_tables.models.state import EngineSnapshot


logger = get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class SnapshotRecord:
    """Record of a saved engine snapshot.

    Attributes:
        id: Unique identifier.
        name: User-provided snapshot name.
        table_count: Number of custom tables in the snapshot.
        created_at: When the snapshot was first saved.
        updated_at: When the snapshot was last saved.
    """

    id: str
    name: str
    table_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> SnapshotRecord:
        """Create from database row."""
        return cls(
            id=row[0],
            name=row[1],
            table_count=row[2],
            created_at=datetime.fromisoformat(row[3]),
            updated_at=datetime.fromisoformat(row[4]),
        )


# =============================================================================
# Database Class
# =============================================================================


class SnapshotDatabase:
    """SQLite database of named engine snapshots."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Initialize database.

        Args:
            db_path: Path to database file. If None, uses the configured path.

        Raises:
            StorageError: If the schema cannot be created.
        """
        if db_path is None:
            self.db_path = get_settings().storage.database_path
        else:
            self.db_path = Path(db_path)

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

        logger.info("Snapshot database initialized", path=str(self.db_path))

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with proper cleanup."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as exc:
            raise StorageError(
                f"Cannot open snapshot database: {exc}",
                details={"path": str(self.db_path)},
            ) from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(
                f"Snapshot database error: {exc}",
                details={"path": str(self.db_path)},
            ) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    table_count INTEGER NOT NULL,
                    snapshot_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_snapshots_updated
                ON snapshots(updated_at DESC)
            """)
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

    # =========================================================================
    # Snapshot Operations
    # =========================================================================

    def save_snapshot(self, name: str, snapshot: EngineSnapshot) -> SnapshotRecord:
        """Save a snapshot, replacing any snapshot of the same name.

        Args:
            name: Snapshot name.
            snapshot: Engine state to store.

        Returns:
            Saved snapshot record.
        """
        now = datetime.now()
        payload = snapshot.model_dump_json()
        table_count = len(snapshot.tables)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id, created_at FROM snapshots WHERE name = ?", (name,))
            row = cursor.fetchone()

            if row:
                record_id, created_at = row[0], datetime.fromisoformat(row[1])
                cursor.execute("""
                    UPDATE snapshots
                    SET table_count = ?, snapshot_json = ?, updated_at = ?
                    WHERE id = ?
                """, (table_count, payload, now.isoformat(), record_id))
            else:
                record_id, created_at = str(uuid4()), now
                cursor.execute("""
                    INSERT INTO snapshots
                    (id, name, table_count, snapshot_json, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (record_id, name, table_count, payload,
                      now.isoformat(), now.isoformat()))

        logger.info("Snapshot saved", name=name, tables=table_count)

        return SnapshotRecord(
            id=record_id,
            name=name,
            table_count=table_count,
            created_at=created_at,
            updated_at=now,
        )

    def load_snapshot(self, name: str) -> EngineSnapshot | None:
        """Load a snapshot by name.

        Args:
            name: Snapshot name.

        Returns:
            The snapshot if found, None otherwise.

        Raises:
            StorageError: If the stored snapshot is corrupt.
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT snapshot_json FROM snapshots WHERE name = ?", (name,))
            row = cursor.fetchone()

        if row is None:
            return None
        try:
            return EngineSnapshot.model_validate_json(row[0])
        except PydanticValidationError as exc:
            raise StorageError(
                f"Stored snapshot '{name}' is invalid",
                details={"errors": exc.error_count()},
            ) from exc

    def list_snapshots(self) -> list[SnapshotRecord]:
        """Get all saved snapshots, most recently updated first."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT id, name, table_count, created_at, updated_at
                FROM snapshots ORDER BY updated_at DESC
            """)
            return [SnapshotRecord.from_row(tuple(row)) for row in cursor.fetchall()]

    def delete_snapshot(self, name: str) -> bool:
        """Delete a snapshot.

        Returns:
            True if deleted, False if not found.
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM snapshots WHERE name = ?", (name,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Snapshot deleted", name=name)

        return deleted

    def get_snapshot_count(self) -> int:
        """Get total number of saved snapshots."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM snapshots")
            return cursor.fetchone()[0]


__all__ = [
    "SnapshotDatabase",
    "SnapshotRecord",
]
