"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog

_log_file: TextIO | None = None


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Configure structlog with console output.

    When *log_file* is given (detached daemon), events are appended to that
    file without colours instead of being printed to stderr.
    """
    global _log_file

    log_level = getattr(logging, level.upper(), logging.INFO)

    if _log_file is not None:
        _log_file.close()
        _log_file = None

    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _log_file = open(log_file, "a", encoding="utf-8", buffering=1)
        output: TextIO = _log_file
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        output = sys.stderr
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger instance."""
    return structlog.get_logger(name)
