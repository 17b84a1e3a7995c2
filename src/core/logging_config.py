"""Structured logging configuration.

This module initializes loggers with a stable structured format.
It prefers structlog and falls back to standard logging if absent.
Events go to stderr so command output on stdout stays parseable.
The minimum level comes from ``DASHBUILDER_LOG_LEVEL``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

from core.constants import DEFAULT_LOG_LEVEL

_STRUCTLOG_CONFIGURED = False


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog or stdlib logger with structured output.
    """
    try:
        import structlog
    except ImportError:
        return _get_standard_logger(name)

    global _STRUCTLOG_CONFIGURED
    if not _STRUCTLOG_CONFIGURED:
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(resolve_log_level()),
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=True,
        )
        _STRUCTLOG_CONFIGURED = True
    return structlog.get_logger(name)


def resolve_log_level() -> int:
    """Resolve the numeric log level from the environment.

    Unknown level names fall back to the default level.

    Returns:
        Stdlib logging level number.
    """
    level_name = os.getenv("DASHBUILDER_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(level_name)
    if isinstance(level, int):
        return level
    return logging.getLevelName(DEFAULT_LOG_LEVEL)


def _get_standard_logger(name: str) -> Any:
    """Wrap a stdlib logger writing to stderr with the configured level."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(resolve_log_level())
    return _StructuredStandardLogger(logger)


class _StructuredStandardLogger:
    """Stdlib logger adapter accepting ``event, **fields`` calls like structlog."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def debug(self, event: str, **fields: object) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, **fields: object) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields: object) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, **fields: object) -> None:
        self._emit(logging.ERROR, event, fields)

    def _emit(self, level: int, event: str, fields: dict[str, object]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if fields:
            message = json.dumps({"event": event, **fields}, sort_keys=True, default=str)
        else:
            message = event
        self._logger.log(level, message)
