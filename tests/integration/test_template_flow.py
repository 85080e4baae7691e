"""Integration tests for rolling and template resolution through the engine.

Tests the complete flow from table lookup through rolls, relationships,
caching and template expansion.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from story_tables.core.exceptions import TableNotFoundError
from story_tables.engine.table_engine import TableEngine
from story_tables.models import RandomTable, TableEntry


class TestRollFlow:
    """Test rolls on built-in and custom tables."""

    def test_roll_builtin(self, engine: TableEngine) -> None:
        """Roll on a built-in table by name."""
        result = engine.roll("weather", {"current_season": "summer"})

        assert result.table_id == "Weather"
        assert result.entry_id is not None
        assert engine.registry.usage("Weather").use_count == 1

    def test_conditional_entry_respects_context(self, engine: TableEngine) -> None:
        """Snow never falls outside winter."""
        descriptions = {
            engine.roll("weather", {"current_season": "summer", "i": i}).description
            for i in range(200)
        }

        assert "Heavy snow" not in descriptions

    def test_unknown_table(self, engine: TableEngine) -> None:
        """Rolling on a missing table raises."""
        with pytest.raises(TableNotFoundError):
            engine.roll("Dragons")

    def test_relationship_attaches_treasure(self, engine: TableEngine) -> None:
        """Bandit encounters bring treasure; other encounters do not."""
        results = [engine.roll("encounter", {"i": i}) for i in range(100)]

        for result in results:
            if "Bandits" in result.description:
                assert [r.table_id for r in result.linked_results] == ["Treasure"]
            else:
                assert result.linked_results == ()

    def test_identical_rolls_are_cached(self, engine: TableEngine) -> None:
        """Repeating a roll with the same context serves the cached result."""
        first = engine.roll("treasure", {"character_level": 3})
        second = engine.roll("treasure", {"character_level": 3})

        assert second == first
        assert engine.metrics().cache_hits >= 1

    def test_replacing_table_invalidates_results(self, engine: TableEngine) -> None:
        """Replacing a custom table drops its cached results."""
        engine.add_tables(RandomTable(name="Mood", entries=[TableEntry(description="Calm")]))
        assert engine.roll("mood").description == "Calm"

        engine.add_tables(RandomTable(name="Mood", entries=[TableEntry(description="Tense")]))

        assert engine.roll("mood").description == "Tense"

    def test_roll_by_formula(self, engine: TableEngine) -> None:
        """Formula rolls select by range."""
        result = engine.roll_by_formula("weather")

        assert 1 <= result.roll <= 100
        assert result.description in {e.description for e in engine.get_table("weather").entries}


class TestTemplateFlow:
    """Test template expansion against the shipped tables."""

    def test_resolve_nested(self, engine: TableEngine) -> None:
        """Nested templates expand fully."""
        text = engine.resolve("You enter {tavern_name}, run by {npc_name}.")

        assert "{" not in text
        assert text.startswith("You enter ")

    def test_names_unique_per_story(self, engine: TableEngine) -> None:
        """A story draws every name once before repeating."""
        names = [engine.resolve("{npc_name}", story_id="saga") for _ in range(8)]

        assert len(set(names)) == 8
        assert engine.resolve("{npc_name}", story_id="other") in names

    def test_reset_story(self, engine: TableEngine) -> None:
        """Resetting a story clears its consumption."""
        engine.resolve("{npc_name}", story_id="saga")

        assert engine.reset_consumption(story_id="saga") == 1
        assert engine.consumed_items("npc_name", "saga") == []


class TestTableManagement:
    """Test importing, searching and preloading tables."""

    def test_import_tables(self, engine: TableEngine, sample_table_data: dict[str, Any]) -> None:
        """Valid tables are imported and invalid ones reported."""
        count, errors = engine.import_tables(
            {"tables": {"omens": sample_table_data, "bad": {"name": "Bad", "entries": []}}}
        )

        assert count == 1
        assert len(errors) == 1
        assert errors[0].startswith('Table "Bad"')
        assert engine.find_table("bad") is None
        assert engine.roll("omens", {"story_progress": 10}).description == (
            "A black cat crosses the path"
        )

    def test_import_with_huge_number_condition(self, engine: TableEngine) -> None:
        """A condition with an integer past the float range imports and rolls."""
        huge = "1" + "0" * 400
        count, errors = engine.import_tables(
            {
                "name": "Portents",
                "entries": [
                    {
                        "description": "The stars align",
                        "modifiers": [{"type": "conditional", "condition": f"{huge} > 0.5"}],
                    }
                ],
            }
        )

        assert (count, errors) == (1, [])
        assert engine.roll("portents").description == "The stars align"

    def test_search_entries(self, engine: TableEngine) -> None:
        """Entry search filters by tags."""
        found = engine.search_entries("treasure", tags=["magic"])

        assert [e.description for e in found] == [
            "a potion of healing",
            "a blade that hums in the dark",
        ]

    def test_validate_reports_clash(self, engine: TableEngine) -> None:
        """Validating a table whose name is taken warns about replacement."""
        table = RandomTable(name="Mood", entries=[TableEntry(description="Calm")])
        engine.add_tables(table)

        report = engine.validate_table(table)

        assert report.is_valid is True
        assert report.warnings == ["A table with this name already exists and will be replaced"]

    def test_preload(self, engine: TableEngine) -> None:
        """Preloading warms every table."""
        count = asyncio.run(engine.preload())

        assert count == len(engine.registry.names())
        assert engine.cache_stats().table_cache.size == count

    def test_lookups_after_preload_hit_table_cache(self, engine: TableEngine) -> None:
        """Rolls and templates read preloaded definitions from the table cache."""
        asyncio.run(engine.preload())

        engine.roll("weather")
        engine.resolve("{animal}")

        assert engine.cache_stats().table_cache.hit_rate > 0

    def test_cached_table_follows_registry_changes(self, engine: TableEngine) -> None:
        """Replacing or removing a custom table is seen by cached lookups."""
        engine.add_tables(RandomTable(name="Mood", entries=[TableEntry(description="Calm")]))
        assert engine.find_table("mood") is engine.find_table("mood")

        engine.add_tables(RandomTable(name="Mood", entries=[TableEntry(description="Grim")]))
        assert engine.roll("mood").description == "Grim"

        engine.remove_table("mood")
        assert engine.find_table("mood") is None

    def test_clear_caches_and_metrics(self, engine: TableEngine) -> None:
        """Caches and metrics can be reset."""
        engine.roll("weather")
        engine.clear_caches()
        engine.reset_metrics()

        assert engine.cache_stats().result_cache.size == 0
        assert engine.metrics().cache_hits == 0
