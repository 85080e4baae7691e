"""Storage module for Story Tables persistence.

Provides SQLite-based storage for named engine snapshots (custom tables
and per-story consumption records).
"""

from story_tables.storage.database import (
    SnapshotDatabase,
    SnapshotRecord,
)

__all__ = [
    "SnapshotDatabase",
    "SnapshotRecord",
]
