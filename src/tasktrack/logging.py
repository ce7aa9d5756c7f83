"""Structured logging setup for tasktrack."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog

from tasktrack.config import LoggingConfig

_LOGGER_NAME = "tasktrack"


def get_logger(component: Optional[str] = None) -> "structlog.stdlib.BoundLogger":
    """Return a structlog logger bound to the tasktrack namespace."""
    logger = structlog.get_logger(_LOGGER_NAME)
    if component:
        logger = logger.bind(component=component)
    return logger


def ensure_stdlib_handler(level: int = logging.INFO) -> None:
    """Ensure a standard logging handler exists for the tasktrack namespace."""
    root_logger = logging.getLogger(_LOGGER_NAME)
    if root_logger.handlers:
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.setLevel(level)
    root_logger.addHandler(handler)


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure structlog processors and the stdlib handler.

    Args:
        config: Logging settings. Defaults are used if None.
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)

    ensure_stdlib_handler(level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]

    if config.include_timestamps:
        processors.append(structlog.processors.TimeStamper(fmt="ISO"))

    if config.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    get_logger("logging").info(
        "Logging configured",
        level=config.level,
        format=config.format,
    )


__all__ = ["get_logger", "ensure_stdlib_handler", "configure_logging"]
