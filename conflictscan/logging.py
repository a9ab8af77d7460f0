"""
Log setup for the conflictscan package.

Everything logs under the "conflictscan" namespace. JSON lines by default,
plain text with CONFLICTSCAN_LOG_FORMAT=text. Context such as record counts,
the dictionary version or a rejected query goes in `extra`; only the names
in _EXTRA_FIELDS reach the JSON entry.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


LOG_LEVEL = os.getenv("CONFLICTSCAN_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("CONFLICTSCAN_LOG_FORMAT", "json")  # "json" or "text"

# Extra attributes copied into JSON entries when present on the record
_EXTRA_FIELDS = (
    "record_count", "system_count", "unit_count", "flag_count",
    "positive_count", "skipped_count", "skipped_keys", "dictionary_version",
    "query", "duration_ms", "status_code", "method", "path",
    "error", "error_type",
)


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable format for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None, stream=None):
    """
    Attach a single handler to the "conflictscan" logger.

    Level and format default to CONFLICTSCAN_LOG_LEVEL and
    CONFLICTSCAN_LOG_FORMAT. Safe to call again; earlier handlers are
    replaced.
    """
    root = logging.getLogger("conflictscan")
    root.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    if (fmt or LOG_FORMAT) == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the conflictscan namespace."""
    return logging.getLogger(f"conflictscan.{name}")
