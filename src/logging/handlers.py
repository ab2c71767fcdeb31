# src/logging/handlers.py - v1
"""Rotating file sink for LOG_FILE.

LOG_ROTATION is either a size ("10MB", "512KB") or a period ("hourly",
"daily", "weekly"). LOG_RETENTION is the number of rotated files kept.
"""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}
_SIZE_RE = re.compile(r"^(\d+)\s*(B|KB|MB|GB)$", re.IGNORECASE)
_PERIODS = {"hourly": "H", "daily": "midnight", "weekly": "W0"}


def parse_size(size_str: str) -> int:
    """Parse a size string like '10MB' into bytes."""
    match = _SIZE_RE.match(size_str.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2).upper()]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.Handler:
    """File handler rotating by size or by period. Parent dirs are created.

    Raises:
        ValueError: If rotation is neither a size nor a known period.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    when = _PERIODS.get(rotation.strip().lower())
    if when is not None:
        return TimedRotatingFileHandler(
            filename=str(path),
            when=when,
            backupCount=retention,
            encoding="utf-8",
            delay=True,
            utc=True,
        )
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
        delay=True,
    )
