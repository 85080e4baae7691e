"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest

from story_tables.core.config import (
    CacheSettings,
    EngineSettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from story_tables.core.exceptions import ConfigurationError


class TestEngineSettings:
    """Tests for EngineSettings configuration."""

    def test_default_values(self) -> None:
        """Test default engine settings."""
        settings = EngineSettings()

        assert settings.max_depth == 10
        assert settings.default_story_id == "default"
        assert settings.max_explosions == 20
        assert settings.seed is None

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test engine settings read their prefixed environment variables."""
        monkeypatch.setenv("STORY_TABLES_ENGINE_MAX_DEPTH", "4")
        monkeypatch.setenv("STORY_TABLES_ENGINE_SEED", "99")

        settings = EngineSettings()

        assert settings.max_depth == 4
        assert settings.seed == 99

    def test_blank_story_id_rejected(self) -> None:
        """Test that a whitespace-only story id is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            EngineSettings(default_story_id="   ")

        assert "default_story_id" in str(exc_info.value)


class TestCacheSettings:
    """Tests for CacheSettings configuration."""

    def test_default_values(self) -> None:
        """Test default cache settings."""
        settings = CacheSettings()

        assert settings.enabled is True
        assert settings.ttl_seconds == 300.0
        assert settings.max_size == 1000
        assert settings.eviction_ratio == 0.25


class TestStorageSettings:
    """Tests for StorageSettings configuration."""

    def test_custom_path(self, tmp_path: Path) -> None:
        """Test custom database path."""
        settings = StorageSettings(database_path=tmp_path / "custom.db")

        assert settings.database_path == tmp_path / "custom.db"


class TestSettings:
    """Tests for main Settings configuration."""

    def test_default_settings(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default settings initialization."""
        monkeypatch.chdir(tmp_path)

        settings = Settings()

        assert settings.app_name == "Story Tables"
        assert settings.app_version == "0.1.0"
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.engine.max_depth == 10

    def test_debug_mode(self, mock_env_vars: dict[str, str]) -> None:
        """Test debug mode and nested settings from the environment."""
        settings = Settings()

        assert settings.debug is True
        assert settings.is_production is False
        assert settings.log_level == "DEBUG"
        assert settings.engine.max_depth == 5
        assert settings.cache.ttl_seconds == 60.0

    def test_is_production_property(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test is_production property."""
        monkeypatch.setenv("STORY_TABLES_DEBUG", "false")

        assert Settings().is_production is True


class TestGetSettings:
    """Tests for get_settings singleton function."""

    def test_returns_cached_instance(self) -> None:
        """Test that get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_clear_cache_reloads(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that clearing the cache picks up new environment values."""
        first = get_settings()
        monkeypatch.setenv("STORY_TABLES_ENGINE_MAX_DEPTH", "3")
        clear_settings_cache()

        second = get_settings()

        assert second is not first
        assert second.engine.max_depth == 3

    def test_invalid_settings_raise_configuration_error(
        self,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that invalid environment values surface as ConfigurationError."""
        monkeypatch.setenv("STORY_TABLES_LOG_LEVEL", "LOUD")

        with pytest.raises(ConfigurationError):
            get_settings()
