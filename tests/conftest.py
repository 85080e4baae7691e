"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Story Tables test suite.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any

import pytest


if TYPE_CHECKING:
    from collections.abc import Generator


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from story_tables.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set up mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "STORY_TABLES_DEBUG": "true",
        "STORY_TABLES_LOG_LEVEL": "DEBUG",
        "STORY_TABLES_ENGINE_MAX_DEPTH": "5",
        "STORY_TABLES_CACHE_TTL_SECONDS": "60",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def range_table() -> Any:
    """A 1-100 range table with three bands.

    Returns:
        RandomTable instance.
    """
    from story_tables.models.tables import RandomTable, TableEntry

    return RandomTable(
        name="Road Events",
        entries=[
            TableEntry(min=1, max=50, description="Quiet road"),
            TableEntry(min=51, max=80, description="A merchant caravan"),
            TableEntry(min=81, max=100, description="Bandits"),
        ],
    )


@pytest.fixture
def weighted_table() -> Any:
    """A weighted table with weights 1/2/1.

    Returns:
        RandomTable instance.
    """
    from story_tables.models.tables import RandomTable, TableEntry, WeightedModifier

    return RandomTable(
        name="Loot",
        entries=[
            TableEntry(description="Copper", modifiers=[WeightedModifier(weight=1)]),
            TableEntry(description="Silver", modifiers=[WeightedModifier(weight=2)]),
            TableEntry(description="Gold", modifiers=[WeightedModifier(weight=1)]),
        ],
    )


@pytest.fixture
def sample_table_data() -> dict[str, Any]:
    """Raw table data as a host would persist it.

    Returns:
        Dictionary of table data.
    """
    return {
        "name": "Omens",
        "description": "Portents seen on the road",
        "entries": [
            {"min": 1, "max": 60, "description": "A black cat crosses the path"},
            {
                "min": 61,
                "max": 100,
                "description": "A comet burns overhead",
                "modifiers": [{"type": "conditional", "condition": "story_progress > 50"}],
                "metadata": {"tags": ["sky", "rare"], "rarity": "rare"},
            },
        ],
    }


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def rng() -> random.Random:
    """A seeded random source for reproducible tests."""
    return random.Random(42)


@pytest.fixture
def dice_roller(rng: random.Random) -> Any:
    """Create a DiceRoller with a fixed seed for reproducible tests.

    Returns:
        DiceRoller instance with fixed seed.
    """
    from story_tables.engine.dice import DiceRoller

    return DiceRoller(rng=rng)


@pytest.fixture
def evaluator(rng: random.Random) -> Any:
    """Create a ConditionalEvaluator.

    Returns:
        ConditionalEvaluator instance.
    """
    from story_tables.engine.expressions import ConditionalEvaluator

    return ConditionalEvaluator(rng=rng)


@pytest.fixture
def registry() -> Any:
    """Create a TableRegistry with the shipped built-in tables.

    Returns:
        TableRegistry instance.
    """
    from story_tables.engine.registry import TableRegistry

    return TableRegistry()


@pytest.fixture
def tracker() -> Any:
    """Create an empty ConsumptionTracker.

    Returns:
        ConsumptionTracker instance.
    """
    from story_tables.engine.consumption import ConsumptionTracker

    return ConsumptionTracker()


@pytest.fixture
def performance() -> Any:
    """Create a PerformanceLayer with default limits.

    Returns:
        PerformanceLayer instance.
    """
    from story_tables.engine.performance import PerformanceLayer

    return PerformanceLayer()


@pytest.fixture
def roller(evaluator: Any, dice_roller: Any, tracker: Any, performance: Any) -> Any:
    """Create an AdvancedTableRoller with result caching disabled.

    Returns:
        AdvancedTableRoller instance.
    """
    from story_tables.engine.roller import AdvancedTableRoller

    return AdvancedTableRoller(
        evaluator, dice_roller, tracker, performance, cache_results=False
    )


@pytest.fixture
def engine() -> Any:
    """Create a seeded TableEngine.

    Returns:
        TableEngine instance.
    """
    from story_tables.engine.table_engine import TableEngine

    return TableEngine(seed=42)


# =============================================================================
# Utility Fixtures
# =============================================================================


class ScriptedRandom(random.Random):
    """Random source whose ``randint`` returns scripted values in order.

    Once the script runs out, values come from the seeded generator.
    """

    def __init__(self, values: list[int], seed: int = 0) -> None:
        super().__init__(seed)
        self.values = list(values)

    def randint(self, a: int, b: int) -> int:
        if self.values:
            return self.values.pop(0)
        return super().randint(a, b)


@pytest.fixture
def scripted_dice() -> Any:
    """Factory for DiceRollers that return scripted d100 values.

    Returns:
        Callable taking a list of values and returning a DiceRoller.
    """
    from story_tables.engine.dice import DiceRoller

    def factory(values: list[int]) -> Any:
        return DiceRoller(rng=ScriptedRandom(values))

    return factory


@pytest.fixture
def temp_db_path(tmp_path: Any) -> Any:
    """Path for a temporary snapshot database.

    Args:
        tmp_path: Pytest temporary path fixture.

    Returns:
        Path to a database file inside a fresh directory.
    """
    return tmp_path / "db" / "snapshots.db"
