"""Story Tables - procedural random-table engine for story assistants.

Turns named tables and free-text templates into narrative content through
weighted random selection, conditional filtering, text transformation,
cross-table relationships and per-story consumption.

ARCHITECTURE:
- One TableEngine per host session owns every cache and tracker
- Conditions run in a sandboxed evaluator, never as host code
- Results are immutable pydantic models, ready to hand to an LLM prompt

Example:
    >>> from story_tables import TableEngine, RollContext
    >>>
    >>> engine = TableEngine(seed=42)
    >>> result = engine.roll("treasure", RollContext(variables={"character_level": 12}))
    >>> result.table_id
    'Treasure'
    >>> engine.resolve("You enter {tavern_name}.")  # doctest: +SKIP
    'You enter The Rusty Owl.'

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas for tables, rolls and engine state.
    data: Built-in tables.
    engine: Roll engine, evaluator, resolvers, caches.
    storage: SQLite snapshot persistence.
"""

from __future__ import annotations

# Core
from story_tables.core.config import Settings, get_settings
from story_tables.core.exceptions import StoryTablesError
from story_tables.core.logging import configure_logging, get_logger

# Models
from story_tables.models import (
    AdvancedRollOptions,
    EngineSnapshot,
    RandomTable,
    RollContext,
    RollModifiers,
    RollType,
    TableEntry,
    TableRelationship,
    TableResult,
)

# Engine
from story_tables.engine import TableEngine

# Storage
from story_tables.storage import SnapshotDatabase


__version__ = "0.1.0"
__all__ = [
    # Version info
    "__version__",
    # Core
    "StoryTablesError",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Models
    "AdvancedRollOptions",
    "EngineSnapshot",
    "RandomTable",
    "RollContext",
    "RollModifiers",
    "RollType",
    "TableEntry",
    "TableRelationship",
    "TableResult",
    # Engine
    "TableEngine",
    # Storage
    "SnapshotDatabase",
]
