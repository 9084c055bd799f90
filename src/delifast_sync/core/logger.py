"""Structured JSON logging shared by the whole service.

Every record goes to stdout and, unless ``LOG_TO_FILE=false``, to a file under
``logs/`` named after the UAE date and a per-process session ID.
"""

import json
import logging
import os
import sys
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from typing import List
from zoneinfo import ZoneInfo

from delifast_sync.config.constants import TIMEZONE_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))

UAE_TZ = ZoneInfo(TIMEZONE_NAME)

# Distinguishes several starts on the same day
SESSION_ID = uuid.uuid4().hex[:8]
LOG_FILENAME = f"delifast_{datetime.now(UAE_TZ):%Y-%m-%d}_{SESSION_ID}.log"

# Record attributes passed via ``extra=`` that end up in the JSON payload
EXTRA_FIELDS = ("shop", "order_id", "shipment_id", "job")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamped in UAE time."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(UAE_TZ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str, ensure_ascii=False)


def _build_handlers() -> List[logging.Handler]:
    formatter = JSONFormatter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    console.setFormatter(formatter)
    handlers: List[logging.Handler] = [console]

    if LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / LOG_FILENAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    return handlers


def configure_logging() -> None:
    """Attach the JSON handlers to the root logger (once per process)."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    if root.handlers:
        return
    for handler in _build_handlers():
        root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


configure_logging()


def setup_logger(name: str) -> logging.Logger:
    """Get logger for a module."""
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
