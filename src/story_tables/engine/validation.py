"""Validation of table definitions and table backups.

Errors make a table unusable (no entries, unparseable formula or
conditions, inverted ranges). Warnings flag tables that will roll but may
not behave as their author expects.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from story_tables.core.logging import get_logger
from story_tables.engine.dice import validate_formula
from story_tables.engine.expressions import ConditionalEvaluator
from story_tables.engine.registry import TableRegistry
from story_tables.models.state import TableFeatures, TableValidationResult
from story_tables.models.tables import (
    ConditionalModifier,
    LinkedModifier,
    ModifierType,
    RandomTable,
    WeightedModifier,
)


logger = get_logger(__name__)


def detect_features(table: RandomTable) -> TableFeatures:
    """Report which advanced features a table uses."""
    kinds = {modifier.type for entry in table.entries for modifier in entry.modifiers}
    return TableFeatures(
        has_conditionals=ModifierType.CONDITIONAL in kinds,
        has_weights=ModifierType.WEIGHTED in kinds,
        has_links=ModifierType.LINKED in kinds,
        has_unique=ModifierType.UNIQUE in kinds,
        has_metadata=any(entry.metadata is not None for entry in table.entries),
        has_relationships=bool(table.relationships),
    )


def validate_table(
    table: RandomTable,
    evaluator: ConditionalEvaluator,
    registry: TableRegistry | None = None,
) -> TableValidationResult:
    """Validate a table definition.

    Args:
        table: Table to check.
        evaluator: Evaluator used to check expressions.
        registry: When given, linked and related tables are checked for
            existence and name clashes are reported.

    Returns:
        TableValidationResult with errors, warnings and detected features.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not table.entries:
        errors.append("Table must have at least one entry")
    elif not any(entry.is_generated or entry.static_text().strip() for entry in table.entries):
        errors.append("Table must have at least one entry with a description")

    formula_error = validate_formula(table.dice_formula)
    if formula_error:
        errors.append(formula_error)

    def check_expression(label: str, expression: str) -> None:
        outcome = evaluator.validate(expression)
        if not outcome.is_valid:
            errors.append(f"{label}: invalid condition {expression!r} ({outcome.error})")

    ranged = any(entry.has_range for entry in table.entries)
    spans: list[tuple[int, int, int]] = []

    for number, entry in enumerate(table.entries, start=1):
        label = f"Entry {number}"
        if not entry.is_generated and not entry.static_text().strip():
            warnings.append(f"{label}: Empty description")

        low, high = entry.bounds()
        if low is not None and high is not None:
            if low > high:
                errors.append(f"{label}: min {low} is greater than max {high}")
            else:
                spans.append((low, high, number))
        elif not entry.has_range and ranged and not entry.has_modifier(ModifierType.WEIGHTED):
            warnings.append(f"{label}: No min/max values specified")

        weighted = 0
        for modifier in entry.modifiers:
            if isinstance(modifier, ConditionalModifier):
                check_expression(label, modifier.condition)
            elif isinstance(modifier, WeightedModifier):
                weighted += 1
                for conditional in modifier.conditional_weights:
                    check_expression(label, conditional.condition)
            elif isinstance(modifier, LinkedModifier) and registry is not None:
                if registry.find(modifier.dependency) is None:
                    warnings.append(f"{label}: linked table '{modifier.dependency}' not found")
        if weighted > 1:
            warnings.append(f"{label}: only the first weighted modifier is used")

    spans.sort()
    for (_, first_high, first), (second_low, _, second) in zip(spans, spans[1:]):
        if second_low <= first_high:
            warnings.append(f"Entries {first} and {second} have overlapping ranges")

    options = table.default_roll_options
    if options is not None and options.reroll_condition:
        check_expression("Default roll options", options.reroll_condition)

    for relationship in table.relationships:
        label = f"Relationship to '{relationship.target_table}'"
        if relationship.condition:
            check_expression(label, relationship.condition)
        if registry is not None and registry.find(relationship.target_table) is None:
            warnings.append(f"{label}: target table not found")

    if registry is not None and any(
        t.key == table.key for t in registry.custom_tables().values()
    ):
        warnings.append("A table with this name already exists and will be replaced")

    return TableValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        features=detect_features(table),
    )


def parse_table_backup(data: Any) -> tuple[list[RandomTable], list[str]]:
    """Read tables from a backup in any of its accepted shapes.

    Accepted shapes are ``{"tables": {key: table, ...}}``, a list of
    tables, or a single table object.

    Args:
        data: Decoded JSON backup.

    Returns:
        Tuple of (parsed tables, errors for tables that failed to parse).
    """
    if isinstance(data, dict) and isinstance(data.get("tables"), dict):
        raw_tables = list(data["tables"].values())
    elif isinstance(data, dict) and isinstance(data.get("tables"), list):
        raw_tables = data["tables"]
    elif isinstance(data, list):
        raw_tables = data
    elif isinstance(data, dict) and "name" in data:
        raw_tables = [data]
    else:
        return [], ["Invalid backup format"]

    tables: list[RandomTable] = []
    errors: list[str] = []
    for raw in raw_tables:
        name = raw.get("name", "Unknown") if isinstance(raw, dict) else "Unknown"
        try:
            tables.append(RandomTable.model_validate(raw))
        except PydanticValidationError as exc:
            errors.append(f'Table "{name}": {exc.error_count()} validation error(s)')
            logger.warning("Backup table rejected", table=name, errors=exc.error_count())
    return tables, errors


__all__ = [
    "detect_features",
    "validate_table",
    "parse_table_backup",
]
