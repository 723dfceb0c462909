"""Logging setup: console output, a size-rotated log file and structlog.

Module code logs through ``logging.getLogger(__name__)``; the HTTP access log
goes through structlog so each request is one key/value event.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

import structlog

from spectra.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"


def configure_logging(settings: Settings) -> None:
    """Install stdout and rotating-file handlers and configure structlog."""
    level = getattr(logging, settings.log.log_level)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.log.log_path:
        log_path = Path(settings.log.log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.log.log_max_size_mb * 1024 * 1024,
            backupCount=settings.log.log_backups,
            encoding="utf-8",
        )
        # The file keeps INFO and above even when the console is at DEBUG
        file_handler.setLevel(max(level, logging.INFO))
        handlers.append(file_handler)

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(
                key_order=["timestamp", "level", "logger", "event"]
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
