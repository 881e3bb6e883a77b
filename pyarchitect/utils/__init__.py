"""Structured logging configuration using structlog.

Log lines go to stderr so they never mix with program output that the
playground prints on stdout.
"""

import sys

import structlog
from pyarchitect.config import settings

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "warn": 30, "error": 40, "critical": 50}


def setup_logging(level: str | None = None) -> None:
    """Configure structlog for PyArchitect.

    Args:
        level: Overrides ``settings.log_level`` (the CLI passes ``warning``
            unless ``--verbose`` is given).
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    log_level = _LEVELS.get((level or settings.log_level).lower(), 20)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
