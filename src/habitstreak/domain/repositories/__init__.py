"""Repository protocol definitions for domain layer."""

from .habit import HabitLogStore, HabitRepository

__all__ = ["HabitLogStore", "HabitRepository"]
