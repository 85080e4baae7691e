"""Tests for logging configuration."""

from __future__ import annotations

from collections.abc import Generator

import pytest
import structlog

from story_tables.core.config import Settings
from story_tables.core.logging import configure_logging, get_logger, story_scope


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test JSON rendering includes the component and event fields."""
        configure_logging(level="INFO", json_format=True)

        get_logger("story_tables.engine.roller").info("Table rolled", table="Weather")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        assert '"component": "engine.roller"' in line
        assert '"table": "Weather"' in line
        assert '"event": "Table rolled"' in line

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test events below the configured level are dropped."""
        configure_logging(level="WARNING", json_format=True)

        get_logger("story_tables.test").info("Quiet")

        assert "Quiet" not in capsys.readouterr().out

    def test_from_settings(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test settings supply the level and format."""
        configure_logging(Settings(log_level="DEBUG", json_logs=True))

        get_logger("story_tables.test").debug("Loud")

        assert '"event": "Loud"' in capsys.readouterr().out


class TestStoryScope:
    """Tests for story_scope."""

    def test_binds_and_unbinds(self) -> None:
        """Test the story id is bound only inside the block."""
        with story_scope("saga"):
            assert structlog.contextvars.get_contextvars()["story_id"] == "saga"
            with story_scope("side-quest"):
                assert structlog.contextvars.get_contextvars()["story_id"] == "side-quest"
            assert structlog.contextvars.get_contextvars()["story_id"] == "saga"

        assert "story_id" not in structlog.contextvars.get_contextvars()

    def test_events_carry_story(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test events inside the scope include the story id."""
        configure_logging(level="INFO", json_format=True)

        with story_scope("saga"):
            get_logger("story_tables.test").info("Inside")

        assert '"story_id": "saga"' in capsys.readouterr().out
