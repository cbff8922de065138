"""Structured logging configuration with JSON output and rotation."""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path

from .config import BaseConfig

ROOT_LOGGER = "habitstreak"


# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _exception_payload(exc_info) -> dict:
    exc_type, exc, _ = exc_info
    payload = {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc) if exc is not None else None,
    }
    # HabitStreakError carries a kind and a retry hint for log consumers
    kind = getattr(exc, "kind", None)
    if kind is not None:
        payload["kind"] = kind
        payload["retryable"] = getattr(exc, "retryable", False)
    return payload


class JSONFormatter(logging.Formatter):
    """One JSON object per line: who logged, what happened and any ``extra`` fields.

    The timestamp is the record's creation time in UTC, not the time it was
    formatted.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            entry["exception"] = _exception_payload(record.exc_info)
            entry["exception"]["traceback"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


LOG_FILENAME = "habitstreak.log"
_DEV_CONSOLE = ("[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s", "%H:%M:%S")
_PROD_CONSOLE = ("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")


def _console_handler(dev_mode: bool) -> logging.Handler:
    fmt, datefmt = _DEV_CONSOLE if dev_mode else _PROD_CONSOLE
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO if dev_mode else logging.WARNING)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
    return handler


def _json_file_handler(path: Path) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(config: BaseConfig) -> logging.Logger:
    """Send package logs to the console and to ``DATA_DIR/logs/habitstreak.log``.

    Safe to call repeatedly; earlier handlers on the package logger are
    closed and replaced.
    """
    log_file = Path(config.DATA_DIR) / "logs" / LOG_FILENAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(logging.INFO)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.addHandler(_console_handler(config.DEV_MODE))
    package_logger.addHandler(_json_file_handler(log_file))

    package_logger.info(
        "Logging initialized",
        extra={"dev_mode": config.DEV_MODE, "log_file": str(log_file)},
    )
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the package root, e.g. ``habitstreak.services.habits``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
