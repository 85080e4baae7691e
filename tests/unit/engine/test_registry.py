"""Tests for the table registry."""

from __future__ import annotations

import pytest

from story_tables.core.exceptions import TableNotFoundError
from story_tables.engine.registry import TableRegistry, UsageOrder
from story_tables.models.tables import RandomTable, TableEntry


def make_table(name: str, *texts: str) -> RandomTable:
    return RandomTable(
        name=name,
        entries=[TableEntry(description=text) for text in texts or ("x",)],
    )


class TestLookup:
    """Tests for case-insensitive lookup."""

    def test_builtin_by_key(self, registry: TableRegistry) -> None:
        """Test built-ins resolve by key."""
        assert registry.find("weather").name == "Weather"

    def test_builtin_case_insensitive(self, registry: TableRegistry) -> None:
        """Test built-ins resolve by name in any case."""
        assert registry.find("WEATHER").name == "Weather"
        assert registry.find("Tavern_Name") is not None

    def test_custom_lookup(self) -> None:
        """Test custom tables resolve by key and case-insensitive name."""
        registry = TableRegistry({"ruins": make_table("Ancient Ruins")})

        assert registry.find("ruins").name == "Ancient Ruins"
        assert registry.find("ancient ruins").name == "Ancient Ruins"

    def test_builtins_win(self) -> None:
        """Test built-ins are tried before custom tables."""
        registry = TableRegistry({"weather": make_table("weather", "Custom rain")})

        assert registry.find("weather").entries[0].text() != "Custom rain"

    def test_not_found(self, registry: TableRegistry) -> None:
        """Test unknown names return None, or raise through get."""
        assert registry.find("nope") is None
        assert "nope" not in registry
        with pytest.raises(TableNotFoundError) as exc_info:
            registry.get("nope")

        assert exc_info.value.details["table_name"] == "nope"

    def test_search(self, registry: TableRegistry) -> None:
        """Test search matches names, descriptions and entry text."""
        registry.add(make_table("Ruins", "A crumbling tower"))

        assert [t.name for t in registry.search("crumbling")] == ["Ruins"]
        assert len(registry.search("")) == len(registry)


class TestCustomTables:
    """Tests for adding, removing and duplicating custom tables."""

    def test_add_and_notify(self) -> None:
        """Test adding a table notifies listeners."""
        changed: list[str] = []
        registry = TableRegistry(on_change=changed.append)

        registry.add(make_table("Ruins"))

        assert "Ruins" in registry.custom_tables()
        assert changed == ["Ruins"]

    def test_add_replaces_case_insensitive(self) -> None:
        """Test a same-named table replaces the old one."""
        registry = TableRegistry(builtin_tables={})
        registry.add(make_table("ruins", "old"))
        registry.add(make_table("Ruins", "new"))

        assert list(registry.custom_tables()) == ["Ruins"]
        assert registry.find("RUINS").entries[0].text() == "new"

    def test_remove(self) -> None:
        """Test removing a custom table."""
        registry = TableRegistry(builtin_tables={})
        registry.add(make_table("Ruins"))

        assert registry.remove("ruins") is True
        assert registry.remove("ruins") is False
        assert registry.find("Ruins") is None

    def test_duplicate_names(self, registry: TableRegistry) -> None:
        """Test duplicates get unique copy names."""
        first = registry.duplicate("Weather")
        second = registry.duplicate("Weather")

        assert first.name == "Weather (Copy)"
        assert second.name == "Weather (Copy) 1"
        assert first.entries == registry.find("Weather").entries

    def test_duplicate_missing(self, registry: TableRegistry) -> None:
        """Test duplicating an unknown table raises."""
        with pytest.raises(TableNotFoundError):
            registry.duplicate("nope")


class TestUsage:
    """Tests for usage tracking."""

    def test_record_usage(self, registry: TableRegistry) -> None:
        """Test usage counts and timestamps."""
        registry.record_usage("Weather")
        registry.record_usage("Weather")

        usage = registry.usage("Weather")
        assert usage.use_count == 2
        assert usage.last_used is not None

    def test_by_usage(self) -> None:
        """Test ordering custom tables by usage."""
        registry = TableRegistry(builtin_tables={})
        registry.add([make_table("A"), make_table("B"), make_table("C")])
        registry.record_usage("B")
        registry.record_usage("B")
        registry.record_usage("A")

        assert [t.name for t in registry.by_usage(UsageOrder.MOST_USED)][:2] == ["B", "A"]
        assert [t.name for t in registry.by_usage(UsageOrder.NEVER_USED)] == ["C"]
