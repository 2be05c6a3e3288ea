"""Logging configuration for the command-line tools."""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

ENV_LOG_LEVEL = "SPECTRAPRINT_LOG_LEVEL"
_EXTRA_KEYS = ("path", "device", "sample_index", "duration_ms")


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        return json.dumps(log_data)


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = os.environ.get(ENV_LOG_LEVEL, "WARNING")
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(level: str | int | None = None, json_format: bool = False) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: Level name or number (SPECTRAPRINT_LOG_LEVEL or WARNING if None)
        json_format: Emit JSON lines instead of human-readable text
    """
    resolved = _resolve_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
