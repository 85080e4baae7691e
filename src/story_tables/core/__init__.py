"""Core module providing configuration, logging, and base exceptions.

Exports:
    Exceptions:
        StoryTablesError: Base exception for all engine errors.
        TableEngineError: Table lookup, rolling and resolution errors.
        ExpressionError: Conditional expression errors.
        ConfigurationError: Configuration-related errors.
        ValidationError: Data validation errors.

    Configuration:
        Settings: Main application settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up application logging.
        get_logger: Get a configured logger instance.
        story_scope: Tag log events with a story id.
"""

from __future__ import annotations

from story_tables.core.config import (
    CacheSettings,
    EngineSettings,
    EvaluatorSettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from story_tables.core.exceptions import (
    ConfigurationError,
    DiceRollError,
    EmptyTableError,
    ExpressionError,
    ExpressionSyntaxError,
    ForbiddenExpressionError,
    NoEligibleEntriesError,
    RelationshipError,
    StorageError,
    StoryTablesError,
    TableEngineError,
    TableNotFoundError,
    ValidationError,
)
from story_tables.core.logging import configure_logging, get_logger, story_scope


__all__ = [
    # Base exception
    "StoryTablesError",
    # Table engine exceptions
    "TableEngineError",
    "TableNotFoundError",
    "NoEligibleEntriesError",
    "EmptyTableError",
    "DiceRollError",
    "RelationshipError",
    # Expression exceptions
    "ExpressionError",
    "ExpressionSyntaxError",
    "ForbiddenExpressionError",
    # Configuration, validation & storage exceptions
    "ConfigurationError",
    "ValidationError",
    "StorageError",
    # Configuration
    "Settings",
    "EngineSettings",
    "CacheSettings",
    "EvaluatorSettings",
    "StorageSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "get_logger",
    "story_scope",
]
