"""Habit completion and streak tracking."""

from __future__ import annotations

from .clock import FixedClock, SystemClock
from .config import BaseConfig
from .errors import (
    ConflictError,
    HabitStreakError,
    NotFoundError,
    TransientError,
    UnauthorizedError,
)

__all__ = [
    "BaseConfig",
    "ConflictError",
    "FixedClock",
    "HabitStreakError",
    "NotFoundError",
    "SystemClock",
    "TransientError",
    "UnauthorizedError",
]
