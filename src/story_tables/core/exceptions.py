"""Custom exception hierarchy for the story table engine.

All exceptions inherit from StoryTablesError so a host application can
handle engine failures at a single boundary while still seeing which table,
expression or setting was involved.

Example:
    >>> from story_tables.core.exceptions import TableNotFoundError
    >>> raise TableNotFoundError("Unknown table", table_name="weather")
"""

from __future__ import annotations

from typing import Any


class StoryTablesError(Exception):
    """Base exception for all story table engine errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Table Engine Exceptions
# =============================================================================


class TableEngineError(StoryTablesError):
    """Base exception for table lookup, rolling and resolution errors."""

    def __init__(
        self,
        message: str,
        *,
        table_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize table engine error with table context.

        Args:
            message: Human-readable error description.
            table_name: Name of the table involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if table_name:
            combined_details["table_name"] = table_name
        super().__init__(message, details=combined_details)


class TableNotFoundError(TableEngineError):
    """Raised when a table name does not match any registered table."""


class NoEligibleEntriesError(TableEngineError):
    """Raised when every entry of a table was filtered out by its conditions.

    Distinct from TableNotFoundError: the table exists, but nothing in it
    applies to the current roll context.
    """


class EmptyTableError(TableEngineError):
    """Raised when a table has no entries at all."""


class DiceRollError(TableEngineError):
    """Raised when a dice expression cannot be parsed or rolled."""

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize dice roll error with expression context.

        Args:
            message: Human-readable error description.
            expression: The dice expression that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if expression:
            combined_details["expression"] = expression
        super().__init__(message, details=combined_details)


class RelationshipError(TableEngineError):
    """Raised when a relationship declaration is invalid or cannot be imported."""

    def __init__(
        self,
        message: str,
        *,
        source_table: str | None = None,
        target_table: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize relationship error with both ends of the link.

        Args:
            message: Human-readable error description.
            source_table: Table declaring the relationship.
            target_table: Table the relationship points at.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if source_table:
            combined_details["source_table"] = source_table
        if target_table:
            combined_details["target_table"] = target_table
        super().__init__(message, details=combined_details)


# =============================================================================
# Expression Exceptions
# =============================================================================


class ExpressionError(StoryTablesError):
    """Base exception for conditional expression failures.

    The evaluator converts these into a false result with an error message;
    they only escape from the lower-level parse/evaluate helpers.
    """

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize expression error with the offending expression.

        Args:
            message: Human-readable error description.
            expression: The expression being evaluated.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if expression is not None:
            combined_details["expression"] = expression
        super().__init__(message, details=combined_details)


class ExpressionSyntaxError(ExpressionError):
    """Raised when an expression cannot be tokenized or parsed."""

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        position: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize syntax error with the character position.

        Args:
            message: Human-readable error description.
            expression: The expression being parsed.
            position: Offset in the expression where parsing failed.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if position is not None:
            combined_details["position"] = position
        super().__init__(message, expression=expression, details=combined_details)


class ForbiddenExpressionError(ExpressionError):
    """Raised when an expression matches the host-escape denylist."""

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        pattern: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize forbidden expression error with the matched pattern.

        Args:
            message: Human-readable error description.
            expression: The rejected expression.
            pattern: The denylist pattern that matched.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if pattern:
            combined_details["pattern"] = pattern
        super().__init__(message, expression=expression, details=combined_details)


# =============================================================================
# Configuration, Validation & Storage Exceptions
# =============================================================================


class ConfigurationError(StoryTablesError):
    """Raised when application configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with config key context.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(StoryTablesError):
    """Raised when table or snapshot data fails validation."""

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error with field context.

        Args:
            message: Human-readable error description.
            field_name: Name of the field that failed validation.
            invalid_value: The value that failed validation.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


class StorageError(StoryTablesError):
    """Raised when the snapshot database cannot be read or written."""


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
]
