"""Error kinds surfaced by habit operations."""

from __future__ import annotations


class HabitStreakError(Exception):
    """Base class for errors callers are expected to handle."""

    kind = "error"
    retryable = False

    def __init__(self, message: str = "", **context: object) -> None:
        super().__init__(message or self.kind)
        self.context = context


class UnauthorizedError(HabitStreakError):
    """No resolvable caller identity."""

    kind = "unauthorized"


class NotFoundError(HabitStreakError):
    """Habit does not exist or belongs to someone else."""

    kind = "not_found"


class ConflictError(HabitStreakError):
    """A concurrent writer changed the same (habit, day) record."""

    kind = "conflict"
    retryable = True


class TransientError(HabitStreakError):
    """Storage was unavailable for every attempt."""

    kind = "transient"
    retryable = True


__all__ = [
    "ConflictError",
    "HabitStreakError",
    "NotFoundError",
    "TransientError",
    "UnauthorizedError",
]
