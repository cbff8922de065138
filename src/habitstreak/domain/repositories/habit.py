"""Habit persistence protocols."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from ...models.habit import DayState, Habit, HabitLog


class HabitLogStore(Protocol):
    """Per-day log access bound to one open transaction.

    Writes are conditional on the state the caller expects, so a writer that
    raced with another sees ``False`` (or a uniqueness error) instead of
    silently overwriting it.
    """

    def get_habit(self, habit_id: int, *, user_id: int, for_update: bool = False) -> Optional[Habit]:
        """Return the owner's habit, optionally locking its row."""
        ...

    def get_state(self, habit_id: int, day: date) -> DayState:
        """Return the day's state, ``DayState.NONE`` when no row exists."""
        ...

    def insert_log(self, habit_id: int, day: date, state: DayState, *, user_id: int) -> None:
        """Create the day's row; fails on the (habit, day) unique index."""
        ...

    def update_state(self, habit_id: int, day: date, *, expected: DayState, new: DayState) -> bool:
        """Change the day's status if it still equals ``expected``."""
        ...

    def delete_log(self, habit_id: int, day: date, *, expected: DayState) -> bool:
        """Remove the day's row if its status still equals ``expected``."""
        ...

    def completed_days(self, habit_id: int) -> set[date]:
        """Return every completed day of the habit."""
        ...

    def save_streak(self, habit_id: int, streak: int) -> Habit:
        """Store the recomputed streak and raise the longest streak if needed."""
        ...


class HabitRepository(Protocol):
    """Owner-scoped habit reads and lifecycle writes."""

    def get_by_id(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        ...

    def list_active(self, *, user_id: int) -> list[Habit]:
        """List only active habits, newest first."""
        ...

    def create(self, *, user_id: int) -> Habit:
        """Create a new active habit with empty streak counters."""
        ...

    def deactivate(self, habit_id: int, *, user_id: int) -> bool:
        """Soft-delete a habit; return False when it is not the owner's."""
        ...

    def list_with_recent_logs(
        self, start_date: date, end_date: date, *, user_id: int
    ) -> list[tuple[Habit, list[HabitLog]]]:
        """Active habits paired with their logs in the range, newest first."""
        ...
