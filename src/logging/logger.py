# src/logging/logger.py - v1
"""Logger factory with JSON and text formatters.

ContextFilter copies the current lookup context (request id, organization,
operation, identity prefix) onto every record at emit time, so handlers in
other threads and test capture see the same fields the formatters print.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from contactcache.logging.context import get_context

_CONTEXT_FIELDS = ("request_id", "organization_id", "operation", "identity")
_NOISY_LOGGERS = ("httpx", "httpcore", "redis")


class ContextFilter(logging.Filter):
    """Attach the current lookup context to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_context()
        for field in _CONTEXT_FIELDS:
            if getattr(record, field, None) is None:
                setattr(record, field, getattr(ctx, field))
        return True


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    context = get_context().as_dict()
    for field in _CONTEXT_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            context[field] = value
    return context


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, context, event, data."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _record_context(record)
        if context:
            entry["context"] = context

        # Set through extra={"event": ..., "data": ...}
        for key in ("event", "data"):
            value = getattr(record, key, None)
            if value:
                entry[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line format for the CLI."""

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        parts = [
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        if "operation" in context:
            parts.append(f"[{context['operation']}]")
        if "identity" in context:
            parts.append(f"({context['identity']})")
        event = getattr(record, "event", None)
        if event:
            parts.append(f"<{event}>")
        parts.append(f"- {record.getMessage()}")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the contactcache namespace."""
    return logging.getLogger(f"contactcache.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.Logger:
    """Configure the contactcache logger. Safe to call more than once.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: "json" for services, "text" for the CLI.
        log_file: Optional LOG_FILE path; stderr only when None.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.

    Returns:
        The configured contactcache logger.
    """
    root_logger = logging.getLogger("contactcache")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    context_filter = ContextFilter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from contactcache.logging.handlers import create_rotating_handler

        handlers.append(
            create_rotating_handler(log_file, rotation=rotation, retention=retention)
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
