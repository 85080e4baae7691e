"""Configuration management for the story table engine.

This module provides centralized configuration using pydantic-settings,
supporting environment variables, .env files and runtime overrides.

Example:
    >>> from story_tables.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.engine.max_depth
    10

Environment Variables:
    STORY_TABLES_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    STORY_TABLES_ENGINE_MAX_DEPTH: Maximum placeholder/relationship nesting
    STORY_TABLES_CACHE_TTL_SECONDS: Lifetime of cached tables, results and indices
    STORY_TABLES_CACHE_MAX_SIZE: Maximum entries per cache
    STORY_TABLES_DATABASE_PATH: Path to the snapshot database
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from story_tables.core.exceptions import ConfigurationError


class EngineSettings(BaseSettings):
    """Configuration for rolling and template resolution.

    Attributes:
        max_depth: Maximum nesting for placeholder and relationship expansion.
        default_story_id: Story used when a caller does not name one.
        max_explosions: Upper bound on consecutive exploding re-rolls.
        seed: Optional random seed for reproducible sessions.
    """

    model_config = SettingsConfigDict(
        env_prefix="STORY_TABLES_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_depth: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum placeholder/relationship nesting depth",
    )
    default_story_id: str = Field(
        default="default",
        min_length=1,
        description="Story id used when none is supplied",
    )
    max_explosions: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Upper bound on exploding re-rolls",
    )
    seed: int | None = Field(
        default=None,
        description="Random seed for reproducible rolls",
    )

    @field_validator("default_story_id", mode="after")
    @classmethod
    def validate_story_id(cls, value: str) -> str:
        """Reject story ids that are blank once stripped.

        Consumption keys are built as ``<table>_<story>``, so a blank story
        id would merge every story's records into one.

        Args:
            value: The configured story id.

        Returns:
            The stripped story id.

        Raises:
            ConfigurationError: If the story id is blank.
        """
        stripped = value.strip()
        if not stripped:
            raise ConfigurationError(
                "default_story_id must not be blank",
                config_key="default_story_id",
            )
        return stripped


class CacheSettings(BaseSettings):
    """Configuration for the table, result and index caches.

    Attributes:
        enabled: Whether roll results are cached at all.
        ttl_seconds: Default lifetime of a cache entry.
        max_size: Maximum number of entries per cache.
        eviction_ratio: Fraction of a full cache evicted on insert.
    """

    model_config = SettingsConfigDict(
        env_prefix="STORY_TABLES_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Cache roll results")
    ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Cache entry lifetime in seconds",
    )
    max_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum entries per cache",
    )
    eviction_ratio: float = Field(
        default=0.25,
        gt=0,
        le=1,
        description="Fraction of entries evicted when a cache is full",
    )


class EvaluatorSettings(BaseSettings):
    """Configuration for the conditional expression evaluator.

    Attributes:
        max_expression_length: Longest expression accepted for evaluation.
        parse_cache_size: Number of parsed expressions kept in memory.
    """

    model_config = SettingsConfigDict(
        env_prefix="STORY_TABLES_EVALUATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_expression_length: int = Field(
        default=500,
        ge=1,
        description="Maximum expression length in characters",
    )
    parse_cache_size: int = Field(
        default=512,
        ge=0,
        description="Parsed expressions kept in memory",
    )


class StorageSettings(BaseSettings):
    """Configuration for the snapshot database.

    Attributes:
        database_path: Path to the SQLite snapshot database.
    """

    model_config = SettingsConfigDict(
        env_prefix="STORY_TABLES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(
        default=Path("data/story_tables.db"),
        description="Path to SQLite snapshot database",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all configuration domains.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Enable debug mode.
        log_level: Application logging level.
        json_logs: Render logs as JSON instead of console output.
        engine: Rolling and resolution settings.
        cache: Cache settings.
        evaluator: Expression evaluator settings.
        storage: Snapshot storage settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="STORY_TABLES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(default="Story Tables", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    engine: EngineSettings = Field(default_factory=EngineSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    evaluator: EvaluatorSettings = Field(default_factory=EvaluatorSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode.

        Returns:
            True if not in debug mode.
        """
        return not self.debug


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The application Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access.

    Primarily useful for testing or when environment variables change
    at runtime.
    """
    get_settings.cache_clear()


__all__ = [
    "EngineSettings",
    "CacheSettings",
    "EvaluatorSettings",
    "StorageSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
