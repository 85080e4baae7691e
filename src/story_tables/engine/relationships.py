"""Cross-table relationships followed after an advanced roll.

Relationships come from two places: those a table declares itself and
those registered at runtime through :meth:`RelationshipResolver.add_relationship`.
When a roll on the source table completes, each relationship is checked and
triggered targets are rolled one level deeper. Their results are attached
to the primary result as ``linked_results``; the primary description, roll
and table id never change.

Trigger rules:
    - A relationship with a condition triggers when the condition is true.
      The condition sees the primary result as ``last_result``.
    - Without a condition, ``parent_child`` always triggers,
      ``cross_reference`` triggers when the result mentions the target
      table, and ``conditional_chain`` never triggers.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from story_tables.core.constants import DEFAULT_MAX_DEPTH
from story_tables.core.exceptions import RelationshipError, StoryTablesError
from story_tables.core.logging import get_logger
from story_tables.engine.expressions import ConditionalEvaluator
from story_tables.engine.registry import TableRegistry
from story_tables.models.rolls import RollContext, TableResult
from story_tables.models.state import RelationshipStats, RelationshipValidation
from story_tables.models.tables import RandomTable, RelationshipType, TableRelationship


if TYPE_CHECKING:
    from story_tables.engine.roller import AdvancedTableRoller


logger = get_logger(__name__)

_RELATIONSHIP_MAP = TypeAdapter(dict[str, list[TableRelationship]])


class RelationshipResolver:
    """Manages relationships and resolves them after rolls.

    Attributes:
        max_depth: Nesting depth at which relationships stop being followed.
    """

    def __init__(
        self,
        registry: TableRegistry,
        evaluator: ConditionalEvaluator,
        roller: AdvancedTableRoller,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        lookup: Callable[[str], RandomTable | None] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            registry: Table lookup for targets.
            evaluator: Evaluator for relationship conditions.
            roller: Roller used for linked rolls.
            max_depth: Maximum nesting depth.
            lookup: Target lookup used while resolving; defaults to
                the registry.
        """
        self._registry = registry
        self._find = lookup or registry.find
        self._evaluator = evaluator
        self._roller = roller
        self._managed: dict[str, list[TableRelationship]] = {}
        self._lock = threading.Lock()
        self.max_depth = max_depth

    # =========================================================================
    # Management
    # =========================================================================

    def add_relationship(self, relationship: TableRelationship) -> None:
        """Register a relationship at runtime.

        Raises:
            RelationshipError: If the relationship names no source table.
        """
        if not relationship.source_table:
            raise RelationshipError(
                "Relationship needs a source table",
                target_table=relationship.target_table,
            )
        key = relationship.source_table.lower()
        with self._lock:
            existing = self._managed.setdefault(key, [])
            if relationship not in existing:
                existing.append(relationship)
        logger.info(
            "Relationship added",
            source=relationship.source_table,
            target=relationship.target_table,
            type=relationship.type,
        )

    def remove_relationship(self, source_table: str, target_table: str) -> int:
        """Remove runtime relationships between two tables.

        Returns:
            Number of relationships removed.
        """
        key = source_table.lower()
        target = target_table.lower()
        with self._lock:
            existing = self._managed.get(key, [])
            kept = [r for r in existing if r.target_table.lower() != target]
            removed = len(existing) - len(kept)
            if kept:
                self._managed[key] = kept
            else:
                self._managed.pop(key, None)
        return removed

    def relationships_for(self, table: RandomTable) -> list[TableRelationship]:
        """Declared plus runtime relationships of a table, sources filled in."""
        declared = [
            r if r.source_table else r.model_copy(update={"source_table": table.name})
            for r in table.relationships
        ]
        with self._lock:
            managed = list(self._managed.get(table.key, []))
        return declared + [r for r in managed if r not in declared]

    def get_relationships(self, table_name: str) -> list[TableRelationship]:
        """Relationships of a table by name."""
        table = self._registry.find(table_name)
        if table is None:
            with self._lock:
                return list(self._managed.get(table_name.lower(), []))
        return self.relationships_for(table)

    def all_relationships(self) -> dict[str, list[TableRelationship]]:
        """Every relationship keyed by source table name."""
        result: dict[str, list[TableRelationship]] = {}
        known: set[str] = set()
        for name in self._registry.names():
            table = self._registry.find(name)
            if table is None:
                continue
            known.add(table.key)
            relationships = self.relationships_for(table)
            if relationships:
                result[table.name] = relationships
        with self._lock:
            orphans = {k: list(v) for k, v in self._managed.items() if k not in known and v}
        for relationships in orphans.values():
            result[relationships[0].source_table] = relationships
        return result

    def stats(self) -> RelationshipStats:
        """Counts of relationships overall and by type."""
        grouped = self.all_relationships()
        by_type: dict[str, int] = {}
        for relationships in grouped.values():
            for relationship in relationships:
                by_type[relationship.type.value] = by_type.get(relationship.type.value, 0) + 1
        return RelationshipStats(
            total=sum(by_type.values()),
            by_type=by_type,
            tables_with_relationships=len(grouped),
        )

    def validate(self) -> RelationshipValidation:
        """Check for cycles and missing target tables.

        Returns:
            RelationshipValidation listing every problem found.
        """
        import networkx as nx

        graph = nx.DiGraph()
        errors: list[str] = []
        for source, relationships in self.all_relationships().items():
            for relationship in relationships:
                target = self._registry.find(relationship.target_table)
                if target is None:
                    errors.append(
                        f"Target table '{relationship.target_table}' not found "
                        f"for relationship from '{source}'"
                    )
                    continue
                graph.add_edge(source, target.name)

        cycles = [list(cycle) for cycle in nx.simple_cycles(graph)]
        for cycle in cycles:
            errors.append(f"Circular dependency: {' -> '.join([*cycle, cycle[0]])}")
        return RelationshipValidation(is_valid=not errors, errors=errors, cycles=cycles)

    def export_json(self) -> str:
        """Serialize every relationship, keyed by source table."""
        data = {
            source: [r.model_dump(mode="json") for r in relationships]
            for source, relationships in self.all_relationships().items()
        }
        return json.dumps(data, indent=2)

    def import_json(self, data: str) -> int:
        """Replace runtime relationships with serialized ones.

        Args:
            data: JSON object mapping source table to relationship lists.

        Returns:
            Number of relationships imported.

        Raises:
            RelationshipError: If the data is not valid relationship JSON.
        """
        try:
            parsed = _RELATIONSHIP_MAP.validate_json(data)
        except PydanticValidationError as exc:
            raise RelationshipError(
                f"Invalid relationship data: {exc.error_count()} error(s)",
                details={"errors": exc.errors(include_url=False)},
            ) from exc

        managed: dict[str, list[TableRelationship]] = {}
        for source, relationships in parsed.items():
            managed[source.lower()] = [
                r if r.source_table else r.model_copy(update={"source_table": source})
                for r in relationships
            ]
        with self._lock:
            self._managed = managed
        count = sum(len(v) for v in managed.values())
        logger.info("Relationships imported", count=count)
        return count

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(
        self,
        result: TableResult,
        table: RandomTable,
        context: RollContext,
    ) -> TableResult:
        """Follow a table's relationships after a roll.

        Args:
            result: The primary result.
            table: Table the result came from.
            context: Context of the primary roll.

        Returns:
            The primary result with triggered outcomes attached.
        """
        relationships = self.relationships_for(table)
        if not relationships:
            return result
        if context.depth >= self.max_depth:
            logger.warning(
                "Maximum relationship depth reached", table=table.name, depth=context.depth
            )
            return result

        linked: list[TableResult] = []
        for relationship in relationships:
            extra: dict[str, Any] = {
                **relationship.parameters,
                "source_result": result.description,
                "source_table": table.name,
            }
            child_context = context.descend(result, **extra)
            if not self._should_trigger(relationship, result, child_context):
                continue

            target = self._find(relationship.target_table)
            if target is None:
                logger.warning(
                    "Relationship target not found",
                    source=table.name,
                    target=relationship.target_table,
                )
                continue

            try:
                linked.append(self._roller.roll_uncached(target, child_context))
            except StoryTablesError as exc:
                logger.warning(
                    "Relationship roll failed",
                    source=table.name,
                    target=target.name,
                    error=exc.message,
                )

        return result.with_linked_results(linked) if linked else result

    def _should_trigger(
        self,
        relationship: TableRelationship,
        result: TableResult,
        context: RollContext,
    ) -> bool:
        if relationship.condition:
            return self._evaluator.evaluate(relationship.condition, context).result
        if relationship.type == RelationshipType.PARENT_CHILD:
            return True
        if relationship.type == RelationshipType.CROSS_REFERENCE:
            target = relationship.target_table.lower()
            linked = (result.linked_table or "").lower()
            return target in result.description.lower() or target == linked
        return False


__all__ = [
    "RelationshipResolver",
]
