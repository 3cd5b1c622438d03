"""Structured logging configuration using structlog.

Log lines go to stderr so they never interleave with the prompts and
playlist reports printed on stdout.
"""

import logging
import sys
from typing import Literal

import structlog


def _level_from_name(level: str) -> int:
    """Translate a level name such as "debug" into a logging constant."""
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: str = "INFO",
    format: Literal["console", "json"] = "console",
) -> None:
    """Configure structlog for the session.
    
    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "console" for a terminal session, "json" for piping to a file
    """
    renderer: structlog.typing.Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
        tracebacks: list[structlog.typing.Processor] = [structlog.processors.dict_tracebacks]
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        tracebacks = []

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            *tracebacks,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_from_name(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, bound to the module name when given.
    
    The logger stays lazy until first use, so module-level loggers pick up
    whatever configure_logging set up later.
    """
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()
