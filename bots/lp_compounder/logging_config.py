#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Logging configuration for the LP compounder.

Every module logs through the standard library. One call to
:func:`configure_logging` at startup attaches:

* a console handler,
* an optional daily-rotated file per instance (``<name>.log``),
* a :class:`RecentLogBuffer` that keeps the last lines in memory for the
  status snapshot.

Usage:
    from logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("Harvested %s reward", amount)
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from collections import deque
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import List, Optional

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_raw_level = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_LOG_LEVEL = _raw_level if _raw_level in VALID_LOG_LEVELS else "INFO"

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

RECENT_LINES = 200

_configured = False


class RecentLogBuffer(logging.Handler):
    """Keeps the most recent formatted records for the reporting surface."""

    def __init__(self, capacity: int = RECENT_LINES):
        super().__init__()
        self._lines: deque[str] = deque(maxlen=capacity)
        self._lock_lines = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:  # pragma: no cover - formatting failure path
            self.handleError(record)
            return
        with self._lock_lines:
            self._lines.append(line)

    def lines(self, limit: Optional[int] = None) -> List[str]:
        with self._lock_lines:
            items = list(self._lines)
        return items[-limit:] if limit else items


recent_logs = RecentLogBuffer()


def instance_log_path(log_dir: Path, instance_name: str) -> Path:
    return log_dir / f"{instance_name}.log"


def configure_logging(
    level: str = DEFAULT_LOG_LEVEL,
    log_file: Optional[Path] = None,
    console: bool = True,
    retention_days: int = 0,
    format_string: str = DEFAULT_LOG_FORMAT,
) -> None:
    """Configure root logger with handlers and formatting.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of the instance log, rotated at midnight
        console: Whether to log to stdout
        retention_days: Rotated files to keep (0 keeps all)
        format_string: Log message format string
    """
    global _configured

    root = logging.getLogger()
    log_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(log_level)

    if _configured:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            if handler is not recent_logs:
                handler.close()

    formatter = logging.Formatter(format_string, datefmt=TIMESTAMP_FORMAT)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                log_file,
                when="midnight",
                backupCount=max(0, retention_days),
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        except OSError as exc:
            print(f"Warning: Failed to create log file {log_file}: {exc}", file=sys.stderr)

    recent_logs.setLevel(log_level)
    recent_logs.setFormatter(formatter)
    root.addHandler(recent_logs)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger; configures console logging on first use."""
    if not _configured:
        log_path_str = os.getenv("LOG_PATH")
        configure_logging(log_file=Path(log_path_str) if log_path_str else None)
    return logging.getLogger(name)
