"""Structured logging for the Archetype Manager engine.

Engine modules log through structlog with keyword context rather than
formatted strings, so a host can route events to its own console or ship them
as JSON. Operation context (operation name, archetype slug, class instance)
is carried in contextvars and appears on every event logged while an apply,
remove, or restore is running.

Example:
    >>> from archetype_manager.core.logging import get_logger, log_operation
    >>> logger = get_logger(__name__)
    >>> with log_operation("apply", slug="two-handed-fighter", class_instance="abc"):
    ...     logger.info("Archetype applied", feature_count=13)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor


if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger

    from archetype_manager.core.config import Settings

_STDLIB_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def tag_engine_events(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mark events as coming from the engine so hosts can filter them."""
    event_dict.setdefault("component", "archetype_manager")
    return event_dict


def _numeric_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


# =============================================================================
# Configuration
# =============================================================================


def configure_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Events go to stderr so they never mix with output a host writes to
    stdout.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Render one JSON object per event instead of the
            colored console format.
        log_file: Also append stdlib records to this file.
    """
    numeric = _numeric_level(level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        tag_engine_events,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(format=_STDLIB_FORMAT, level=numeric, handlers=handlers, force=True)


def configure_from_settings(settings: Settings) -> None:
    """Configure logging from ``Settings.log_level`` and ``Settings.json_logs``."""
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structlog logger, typically with ``__name__``."""
    return structlog.get_logger(name)


# =============================================================================
# Context
# =============================================================================


def bind_context(**kwargs: Any) -> None:
    """Bind values onto every subsequent event in the current context.

    Example:
        >>> bind_context(character="Valeros", class_tag="fighter")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop every value bound with ``bind_context``."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_operation(operation: str, **kwargs: Any) -> Iterator[None]:
    """Bind ``operation`` and ``kwargs`` for the duration of the block.

    Values bound before the block are restored on exit. Each asyncio task
    runs in its own context copy, so concurrent operations do not see each
    other's values.
    """
    with structlog.contextvars.bound_contextvars(operation=operation, **kwargs):
        yield


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "clear_context",
    "log_operation",
]
