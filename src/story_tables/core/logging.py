"""Structured logging for the story table engine.

Engine modules log keyword-rich structlog events. Every event names the
engine component that emitted it, and events emitted while a roll or a
template is being resolved for a story carry that story's id.

Example:
    >>> from story_tables.core.logging import get_logger, story_scope
    >>> logger = get_logger(__name__)
    >>> with story_scope("chapter-3"):
    ...     logger.info("Table rolled", table="weather", roll=42)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor


if TYPE_CHECKING:
    from story_tables.core.config import Settings


_PACKAGE_PREFIX = "story_tables."


def _component(name: str | None) -> str:
    if not name:
        return "story_tables"
    return name.removeprefix(_PACKAGE_PREFIX)


def configure_logging(
    settings: Settings | None = None,
    *,
    level: str | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Configure logging for the engine and its host.

    Explicit arguments win over the settings; missing settings fall back
    to the application settings.

    Args:
        settings: Settings providing ``log_level`` and ``json_logs``.
        level: Logging level name.
        json_format: Render JSON lines instead of console output.
        log_file: Optional file that also receives standard library records.
    """
    if settings is None and (level is None or json_format is None):
        from story_tables.core.config import get_settings

        settings = get_settings()
    level_name = (level or (settings.log_level if settings else "INFO")).upper()
    as_json = json_format if json_format is not None else bool(settings and settings.json_logs)
    numeric_level = getattr(logging, level_name, logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if as_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=numeric_level,
        stream=sys.stdout,
        force=True,
    )
    if log_file:
        handler = logging.FileHandler(log_file)
        handler.setLevel(numeric_level)
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logging.getLogger().addHandler(handler)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Logger whose events carry a ``component`` field.

    Args:
        name: Module name, typically ``__name__``.

    Returns:
        A lazily configured structlog logger.
    """
    return structlog.get_logger(component=_component(name))


@contextmanager
def story_scope(story_id: str) -> Iterator[None]:
    """Tag every event logged inside the block with a story id.

    Scopes nest; the innermost story id wins until its block exits.

    Args:
        story_id: Story being resolved.
    """
    with structlog.contextvars.bound_contextvars(story_id=story_id):
        yield


__all__ = [
    "configure_logging",
    "get_logger",
    "story_scope",
]
