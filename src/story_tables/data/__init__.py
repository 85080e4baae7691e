"""Table data shipped with the engine."""

from __future__ import annotations

from story_tables.data.builtin_tables import BUILTIN_TABLES


__all__ = [
    "BUILTIN_TABLES",
]
