"""Tests for template expansion."""

from __future__ import annotations

from typing import Any

import pytest

from story_tables.engine.consumption import ConsumptionTracker
from story_tables.engine.dice import DiceRoller
from story_tables.engine.placeholders import PlaceholderResolver
from story_tables.engine.registry import TableRegistry
from story_tables.models.tables import RandomTable, TableEntry


def single(name: str, text: str, **kwargs: Any) -> RandomTable:
    return RandomTable(name=name, entries=[TableEntry(description=text)], **kwargs)


@pytest.fixture
def resolver(registry: TableRegistry, tracker: ConsumptionTracker, dice_roller: DiceRoller) -> Any:
    """Create a PlaceholderResolver over the built-in tables."""
    return PlaceholderResolver(registry, tracker, dice_roller)


class TestResolve:
    """Tests for basic placeholder expansion."""

    def test_plain_text_unchanged(self, resolver: PlaceholderResolver) -> None:
        """Test text without placeholders is returned as is."""
        assert resolver.resolve("Nothing to see") == "Nothing to see"

    def test_single_placeholder(self, resolver: PlaceholderResolver) -> None:
        """Test a placeholder becomes one of the table's entries."""
        animals = {e.description for e in resolver._registry.find("animal").entries}

        assert resolver.resolve("{animal}") in animals

    def test_unknown_table_verbatim(self, resolver: PlaceholderResolver) -> None:
        """Test unknown tables stay in the output."""
        assert resolver.resolve("A {dragon} appears") == "A {dragon} appears"

    def test_nested_templates(self, resolver: PlaceholderResolver) -> None:
        """Test produced text is expanded again."""
        name = resolver.resolve("{tavern_name}")

        assert "{" not in name
        assert name[0].isupper()

    def test_records_usage(self, resolver: PlaceholderResolver) -> None:
        """Test resolving a placeholder counts as a table use."""
        resolver.resolve("{animal} and {animal}")

        assert resolver._registry.usage("Animal").use_count == 2


class TestModifiers:
    """Tests for modifier chains."""

    def test_modifier_order(self, tracker: ConsumptionTracker, dice_roller: DiceRoller) -> None:
        """Test modifiers apply left to right."""
        registry = TableRegistry(builtin_tables={}, custom_tables={"beast": single("beast", "wolf")})
        resolver = PlaceholderResolver(registry, tracker, dice_roller)

        assert resolver.resolve("{beast.plural.uppercase}") == "WOLVES"
        assert resolver.resolve("{beast.article.capitalize}") == "A wolf"
        assert resolver.resolve("{beast.capitalize.article}") == "a Wolf"
        assert resolver.resolve("{beast.the}") == "the wolf"

    def test_unknown_modifier_ignored(
        self,
        tracker: ConsumptionTracker,
        dice_roller: DiceRoller,
    ) -> None:
        """Test unknown modifiers are skipped."""
        registry = TableRegistry(builtin_tables={}, custom_tables={"beast": single("beast", "owl")})
        resolver = PlaceholderResolver(registry, tracker, dice_roller)

        assert resolver.resolve("{beast.sparkly.uppercase}") == "OWL"

    def test_pick(self, resolver: PlaceholderResolver) -> None:
        """Test pick draws distinct entries joined with commas."""
        picked = resolver.resolve("{animal.pick 3}").split(", ")

        assert len(picked) == 3
        assert len(set(picked)) == 3


class TestInlineRolls:
    """Tests for inline dice placeholders."""

    def test_roll(self, resolver: PlaceholderResolver) -> None:
        """Test dice notation is rolled."""
        for _ in range(20):
            assert 5 <= int(resolver.resolve("{roll 2d6+3}")) <= 15

    def test_rand(self, resolver: PlaceholderResolver) -> None:
        """Test rand yields an integer in range."""
        for _ in range(20):
            assert 1 <= int(resolver.resolve("{rand 1-10}")) <= 10

    def test_bad_roll_verbatim(self, resolver: PlaceholderResolver) -> None:
        """Test malformed dice stay verbatim."""
        assert resolver.resolve("{roll banana}") == "{roll banana}"


class TestConsumable:
    """Tests for consumable tables."""

    def test_exhaustion_and_reset(self, resolver: PlaceholderResolver) -> None:
        """Test every name appears once before any repeats."""
        names = {e.description for e in resolver._registry.find("npc_name").entries}

        drawn = [resolver.resolve("{npc_name}", story_id="s1") for _ in range(len(names))]

        assert sorted(drawn) == sorted(names)
        assert sorted(resolver.consumed_items("npc_name", "s1")) == sorted(names)

        resolver.resolve("{npc_name}", story_id="s1")
        assert len(resolver.consumed_items("npc_name", "s1")) == 1

    def test_stories_are_independent(self, resolver: PlaceholderResolver) -> None:
        """Test consumption in one story does not affect another."""
        resolver.resolve("{npc_name}", story_id="s1")

        assert resolver.consumed_items("npc_name", "s2") == []

    def test_consumable_modifier(self, resolver: PlaceholderResolver) -> None:
        """Test the consumable modifier applies to an ordinary table."""
        drawn = {resolver.resolve("{animal.consumable}", story_id="s") for _ in range(8)}

        assert len(drawn) == 8

    def test_reset_consumption(self, resolver: PlaceholderResolver) -> None:
        """Test explicit reset clears consumed values."""
        resolver.resolve("{npc_name}", story_id="s1")

        assert resolver.reset_consumption("NPC Name", "s1") == 1
        assert resolver.consumed_items("npc_name", "s1") == []


class TestDepthLimit:
    """Tests for recursion termination."""

    def test_self_reference_terminates(
        self,
        tracker: ConsumptionTracker,
        dice_roller: DiceRoller,
    ) -> None:
        """Test a self-referencing table stops at the depth limit."""
        registry = TableRegistry(builtin_tables={}, custom_tables={"self": single("self", "{self}")})
        resolver = PlaceholderResolver(registry, tracker, dice_roller, max_depth=10)

        assert resolver.resolve("{self}") == "{self}"
        assert registry.usage("self").use_count == 10

    def test_depth_at_limit_returns_text(self, resolver: PlaceholderResolver) -> None:
        """Test text at the depth limit is returned unchanged."""
        assert resolver.resolve("{animal}", depth=10) == "{animal}"
