"""Table engine module for Story Tables.

This module provides the procedural table-resolution engine: weighted and
conditional rolls, template expansion, cross-table relationships,
per-story consumption, and caching.

Submodules:
    dice: d100 strategies and dice-notation rolls (d20 library)
    expressions: Sandboxed conditional expression evaluator
    registry: Built-in and custom table lookup
    roller: Weighted roll engine
    relationships: Cross-table relationship resolution
    placeholders: Template expansion with text modifiers
    consumption: Per-story consumed-entry tracking
    performance: TTL caches, entry indices and metrics
    validation: Table definition checks
    table_engine: Facade wiring every component together

Example:
    >>> from story_tables.engine import TableEngine
    >>>
    >>> engine = TableEngine(seed=1)
    >>> engine.resolve("{tavern_name}")  # doctest: +SKIP
    'The Silver Stag'
"""

from __future__ import annotations

# =============================================================================
# Dice Rolling
# =============================================================================
from story_tables.engine.dice import (
    D100Roll,
    DiceExpression,
    DiceRoller,
    validate_formula,
)

# =============================================================================
# Expressions
# =============================================================================
from story_tables.engine.expressions import (
    ConditionalEvaluator,
    parse_expression,
    tokenize,
)

# =============================================================================
# Tables & Rolling
# =============================================================================
from story_tables.engine.registry import TableRegistry, UsageOrder
from story_tables.engine.roller import AdvancedTableRoller, select_entry
from story_tables.engine.relationships import RelationshipResolver
from story_tables.engine.validation import (
    detect_features,
    parse_table_backup,
    validate_table,
)

# =============================================================================
# Templates & Consumption
# =============================================================================
from story_tables.engine.consumption import ConsumptionTracker
from story_tables.engine.placeholders import PLACEHOLDER_RE, PlaceholderResolver
from story_tables.engine.transforms import TEXT_MODIFIERS, apply_modifiers

# =============================================================================
# Performance
# =============================================================================
from story_tables.engine.performance import (
    CacheEntry,
    PerformanceLayer,
    TableIndex,
    TTLCache,
)

# =============================================================================
# Facade
# =============================================================================
from story_tables.engine.table_engine import TableEngine


__all__ = [
    # Dice Rolling
    "D100Roll",
    "DiceExpression",
    "DiceRoller",
    "validate_formula",
    # Expressions
    "ConditionalEvaluator",
    "parse_expression",
    "tokenize",
    # Tables & Rolling
    "TableRegistry",
    "UsageOrder",
    "AdvancedTableRoller",
    "select_entry",
    "RelationshipResolver",
    "detect_features",
    "parse_table_backup",
    "validate_table",
    # Templates & Consumption
    "ConsumptionTracker",
    "PLACEHOLDER_RE",
    "PlaceholderResolver",
    "TEXT_MODIFIERS",
    "apply_modifiers",
    # Performance
    "CacheEntry",
    "PerformanceLayer",
    "TableIndex",
    "TTLCache",
    # Facade
    "TableEngine",
]
