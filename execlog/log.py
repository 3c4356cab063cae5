"""Diagnostic logging using loguru.

Intercepts stdlib logging so that every library flows through loguru with a
unified format.  Event records never pass through these handlers: an
``EventLog`` routes them to its own sinks (see ``execlog.event_log``).
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

# Key bound into ``record["extra"]`` by event-log sinks.
EVENT_LOG_EXTRA = "event_log"

_configured = False


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Map stdlib level name -> loguru level
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk the call stack so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def is_diagnostic(record: Record) -> bool:
    """True for execlog's own messages, False for event records."""
    return EVENT_LOG_EXTRA not in record["extra"]


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru as the sole diagnostic sink.

    Call this once at process startup, before opening any ``EventLog``:
    it removes every existing loguru handler.
    """
    global _configured
    level = level.upper()

    # Remove default loguru handler and add ours
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        filter=is_diagnostic,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
    )

    # Intercept all stdlib logging
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    _configured = True
    logger.debug("Logging initialised (level={})", level)


def ensure_logging(level: str = "INFO") -> None:
    """Run ``setup_logging`` unless it already ran in this process.

    Loguru's default handler prints every record, event records included.
    """
    if not _configured:
        setup_logging(level)
