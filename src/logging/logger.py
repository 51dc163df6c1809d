# src/logging/logger.py - v1
"""Logger factory, structured event helper, JSON/text formatters and the
rotating log file.

JSON lines carry the run context (project_id, run_id, step, slot_id) as
top-level keys so ingestion logs can be filtered per project or slot.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from slotingest.logging.context import get_context

# Longest suffix first so "KB" is not read as "B"
_SIZE_SUFFIXES = (("GB", 1024**3), ("MB", 1024**2), ("KB", 1024), ("B", 1))


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(get_context().as_dict())

        data = getattr(record, "data", None)
        if data:
            log_entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable single-line formatter for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
        ]
        if ctx.step:
            parts.append(f"({ctx.step})")
        if ctx.slot_id:
            parts.append(f"[slot={ctx.slot_id}]")
        parts.append(record.getMessage())

        data = getattr(record, "data", None)
        if data:
            parts.append(" ".join(f"{k}={v}" for k, v in data.items()))

        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Configuration is applied by setup_logging()."""
    return logging.getLogger(f"slotingest.{name}")


def log_event(
    logger: logging.Logger, level: int, message: str, **data: Any,
) -> None:
    """Log a message with structured key/value data.

    Example:
        log_event(logger, logging.INFO, "Uploaded", sha256=sha, destination=path)
    """
    logger.log(level, message, extra={"data": data})


def parse_size(value: str) -> int:
    """Bytes for a size such as "10MB" or "512 kb" (suffixes B, KB, MB, GB)."""
    text = value.strip().upper()
    for suffix, factor in _SIZE_SUFFIXES:
        if text.endswith(suffix):
            number = text[: -len(suffix)].strip()
            if number.isascii() and number.isdigit():
                return int(number) * factor
            break
    raise ValueError(f"Invalid size format: {value!r}. Use e.g. '10MB'.")


def rotating_file_handler(
    log_file: str | Path, rotation: str = "10MB", retention: int = 30,
) -> RotatingFileHandler:
    """Size-rotated UTF-8 log file; parent directories are created."""
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        path, maxBytes=parse_size(rotation), backupCount=retention, encoding="utf-8",
    )


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    stream: Any = None,
) -> None:
    """Configure the slotingest logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format ("json" or "text").
        log_file: Path to log file (None = console only).
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
        stream: Console stream, stderr by default so stdout stays clean
            for command output.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_file:
        handlers.append(rotating_file_handler(log_file, rotation, retention))

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    package_logger = logging.getLogger("slotingest")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    # Re-init replaces handlers instead of stacking them
    package_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
