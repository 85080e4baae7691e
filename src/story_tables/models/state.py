"""Pydantic V2 schemas for engine state, diagnostics and validation.

These models are the engine's serializable surface: consumption records and
snapshots cross the persistence boundary, metrics and cache statistics are
read-only diagnostics.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from story_tables.models.tables import RandomTable


# =============================================================================
# Consumption & Snapshots
# =============================================================================


class ConsumedEntry(BaseModel):
    """Values already produced by a consumable table for one story.

    Attributes:
        table_id: Table name as first recorded.
        story_id: Story the record belongs to.
        consumed_items: Produced descriptions, in first-produced order.
    """

    model_config = ConfigDict(extra="forbid")

    table_id: str = Field(min_length=1)
    story_id: str = Field(min_length=1)
    consumed_items: list[str] = Field(default_factory=list)


class EngineSnapshot(BaseModel):
    """Reconstructible engine state: custom tables and consumption records."""

    model_config = ConfigDict(extra="forbid")

    tables: list[RandomTable] = Field(default_factory=list)
    consumed: dict[str, ConsumedEntry] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)


class TableUsage(BaseModel):
    """How often and when a table was last used."""

    model_config = ConfigDict(extra="forbid")

    use_count: int = Field(default=0, ge=0)
    last_used: datetime | None = None


# =============================================================================
# Diagnostics
# =============================================================================


class PerformanceMetrics(BaseModel):
    """Cumulative engine timings and cache counters."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    roll_time_ms: float = Field(default=0.0, ge=0)
    evaluation_time_ms: float = Field(default=0.0, ge=0)
    cache_hits: int = Field(default=0, ge=0)
    cache_misses: int = Field(default=0, ge=0)
    table_loads: int = Field(default=0, ge=0)


class CacheStats(BaseModel):
    """Size and hit rate of one cache."""

    model_config = ConfigDict(frozen=True)

    size: int = Field(ge=0)
    hit_rate: float = Field(ge=0)


class CacheStatistics(BaseModel):
    """Statistics for each of the engine's caches."""

    model_config = ConfigDict(frozen=True)

    table_cache: CacheStats
    result_cache: CacheStats
    index_cache: CacheStats


# =============================================================================
# Validation
# =============================================================================


class TableFeatures(BaseModel):
    """Advanced features detected on a table."""

    model_config = ConfigDict(frozen=True)

    has_conditionals: bool = False
    has_weights: bool = False
    has_links: bool = False
    has_unique: bool = False
    has_metadata: bool = False
    has_relationships: bool = False


class TableValidationResult(BaseModel):
    """Outcome of validating a table definition."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    features: TableFeatures = Field(default_factory=TableFeatures)


class RelationshipValidation(BaseModel):
    """Outcome of validating the relationship graph."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)


class RelationshipStats(BaseModel):
    """Summary of declared relationships."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    tables_with_relationships: int = 0


__all__ = [
    # Consumption & snapshots
    "ConsumedEntry",
    "EngineSnapshot",
    "TableUsage",
    # Diagnostics
    "PerformanceMetrics",
    "CacheStats",
    "CacheStatistics",
    # Validation
    "TableFeatures",
    "TableValidationResult",
    "RelationshipValidation",
    "RelationshipStats",
]
