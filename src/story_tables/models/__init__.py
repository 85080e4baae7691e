"""Pydantic V2 schemas for the story table engine.

Submodules:
    options: Roll strategies and advanced roll options
    tables: Tables, entries, modifiers and relationships
    rolls: Roll contexts, results and expression outcomes
    state: Consumption records, snapshots, diagnostics and validation

Example:
    >>> from story_tables.models import RandomTable, TableEntry
    >>> table = RandomTable(
    ...     name="Weather",
    ...     entries=[TableEntry(min=1, max=50, description="Clear skies"),
    ...              TableEntry(min=51, max=100, description="Rain")],
    ... )
"""

from __future__ import annotations

# =============================================================================
# Roll Options
# =============================================================================
from story_tables.models.options import (
    AdvancedRollOptions,
    RollModifiers,
    RollType,
)

# =============================================================================
# Tables
# =============================================================================
from story_tables.models.tables import (
    ConditionalModifier,
    ConditionalWeight,
    EntryMetadata,
    LinkedModifier,
    ModifierType,
    RandomTable,
    RelationshipType,
    TableEntry,
    TableModifier,
    TableRelationship,
    UniqueModifier,
    WeightedModifier,
)

# =============================================================================
# Rolls
# =============================================================================
from story_tables.models.rolls import (
    EvaluationResult,
    ExpressionValidation,
    RollContext,
    TableResult,
)

# =============================================================================
# State & Diagnostics
# =============================================================================
from story_tables.models.state import (
    CacheStatistics,
    CacheStats,
    ConsumedEntry,
    EngineSnapshot,
    PerformanceMetrics,
    RelationshipStats,
    RelationshipValidation,
    TableFeatures,
    TableUsage,
    TableValidationResult,
)


__all__ = [
    # Roll options
    "RollType",
    "RollModifiers",
    "AdvancedRollOptions",
    # Tables
    "ModifierType",
    "RelationshipType",
    "ConditionalWeight",
    "ConditionalModifier",
    "WeightedModifier",
    "LinkedModifier",
    "UniqueModifier",
    "TableModifier",
    "EntryMetadata",
    "TableEntry",
    "TableRelationship",
    "RandomTable",
    # Rolls
    "RollContext",
    "TableResult",
    "EvaluationResult",
    "ExpressionValidation",
    # State & diagnostics
    "ConsumedEntry",
    "EngineSnapshot",
    "TableUsage",
    "PerformanceMetrics",
    "CacheStats",
    "CacheStatistics",
    "TableFeatures",
    "TableValidationResult",
    "RelationshipValidation",
    "RelationshipStats",
]
