"""
Structured logging for geomcp.

Logs go to stderr: stdout is reserved for the MCP stdio transport and any
stray byte there corrupts the protocol stream.
"""

import logging
import sys
from typing import Any

import structlog


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per logger so a swapped sys.stderr is honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog with a console or JSON renderer on stderr."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger for the given module name."""
    return structlog.get_logger(name)
