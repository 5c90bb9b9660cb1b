"""Logging setup for the emulator."""

from __future__ import annotations

import logging
import sys
import threading

from app.core.config import settings

_logging_configured = False
_logging_lock = threading.Lock()

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a single stderr handler on the root logger (idempotent)."""
    global _logging_configured

    with _logging_lock:
        if _logging_configured:
            return

        resolved = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
        )

        logging.basicConfig(level=resolved, handlers=[handler], force=True)
        # httpx logs every request line at INFO, including full URLs
        logging.getLogger("httpx").setLevel(logging.WARNING)

        _logging_configured = True
