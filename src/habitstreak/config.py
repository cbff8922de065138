"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from .clock import SystemClock

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, *, minimum: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {parsed}")
    return parsed


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if parsed < 0:
        raise ValueError(f"{name} must not be negative, got {parsed}")
    return parsed


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "habitstreak"
    DB_FILENAME = "habitstreak.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("HABITSTREAK_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("HABITSTREAK_DATABASE_URL", self._build_sqlite_url())
        self.TIMEZONE: Optional[str] = os.getenv("HABITSTREAK_TIMEZONE") or None
        self.MAX_WRITE_ATTEMPTS = _env_int("HABITSTREAK_MAX_WRITE_ATTEMPTS", 3, minimum=1)
        self.RETRY_BACKOFF_SECONDS = _env_float("HABITSTREAK_RETRY_BACKOFF", 0.05)
        self.RECENT_LOG_DAYS = _env_int("HABITSTREAK_RECENT_LOG_DAYS", 7, minimum=1)
        self.SQLITE_TIMEOUT = _env_float("HABITSTREAK_SQLITE_TIMEOUT", 5.0)

    def _resolve_data_dir(self) -> Path:
        """Return the directory holding the SQLite file and logs."""

        data_root = os.getenv("HABITSTREAK_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        return f"sqlite:///{self.DATA_DIR / self.DB_FILENAME}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        engine_options: dict[str, Any] = {}
        if self.is_sqlite:
            engine_options["connect_args"] = {
                "check_same_thread": False,
                "timeout": self.SQLITE_TIMEOUT,
            }
        else:
            engine_options["pool_pre_ping"] = True
        return engine_options

    def make_clock(self) -> SystemClock:
        """Build the wall clock matching the configured time zone."""

        return SystemClock(ZoneInfo(self.TIMEZONE) if self.TIMEZONE else None)
