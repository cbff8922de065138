"""Concrete repository implementations using SQLModel."""

from .habit import SQLModelHabitLogStore, SQLModelHabitRepository

__all__ = ["SQLModelHabitLogStore", "SQLModelHabitRepository"]
