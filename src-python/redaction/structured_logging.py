"""Logging setup for the redaction engine and its API sidecar.

Planner, mapper and merger attach page context to their records through
``extra={...}`` (``page_index``, ``strategy``, ``rectangles`` ...).  Both
formatters surface that context: the text one as a ``key=value`` suffix,
the JSON one as top-level fields.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Sequence

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

ENGINE_EXTRA_KEYS = ("page_index", "pattern", "strategy", "rectangles", "passes")

_QUIET_LOGGERS = ("uvicorn.access",)


def _record_context(record: logging.LogRecord, keys: Sequence[str]) -> dict[str, Any]:
    return {k: v for k in keys if (v := getattr(record, k, None)) is not None}


def _exception_payload(exc_info) -> dict[str, str]:
    exc_type, exc, tb = exc_info
    return {
        "type": exc_type.__name__ if exc_type else "Exception",
        "message": str(exc) if exc else "",
        "stacktrace": "".join(traceback.format_exception(exc_type, exc, tb)),
    }


class TextFormatter(logging.Formatter):
    """Human-readable lines with engine context appended, e.g.
    ``... strategy cross_run failed [page_index=3 strategy=cross_run]``."""

    def __init__(self, extra_keys: Sequence[str] = ENGINE_EXTRA_KEYS) -> None:
        super().__init__(TEXT_FORMAT)
        self.extra_keys = tuple(extra_keys)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = _record_context(record, self.extra_keys)
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, extra_keys: Sequence[str] = ENGINE_EXTRA_KEYS) -> None:
        super().__init__()
        self.extra_keys = tuple(extra_keys)

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_record_context(record, self.extra_keys))
        if record.exc_info and record.exc_info[2]:
            payload["exception"] = _exception_payload(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(log_format: str = "text", level: str = "INFO") -> logging.Handler:
    """Install a single stderr handler on the root logger and return it.

    stdout is left alone: the launcher prints its ``PORT:<n>`` handshake
    there for the host application.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if log_format.lower() == "json" else TextFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
