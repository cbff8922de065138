"""SQLModel table exports."""

from .habit import PERSISTED_STATES, DayState, Habit, HabitLog
from .user import User

__all__ = [
    "DayState",
    "Habit",
    "HabitLog",
    "PERSISTED_STATES",
    "User",
]
