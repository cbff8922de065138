"""Habit and per-day log tables."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import ClassVar, Optional

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel


class DayState(str, Enum):
    """State of one habit on one calendar day.

    ``NONE`` means no log row exists; it is never written to the table.
    """

    NONE = "none"
    COMPLETED = "completed"
    SKIPPED = "skipped"


PERSISTED_STATES = (DayState.COMPLETED, DayState.SKIPPED)


class Habit(SQLModel, table=True):
    """A habit owned by one user, carrying its cached streak counters."""

    __tablename__: ClassVar[str] = "habit"
    __table_args__ = (
        CheckConstraint("streak >= 0", name="ck_habit_streak_non_negative"),
        CheckConstraint("longest_streak >= 0", name="ck_habit_longest_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    is_active: bool = Field(default=True, nullable=False)
    # Derived from habit_log; written only by the completion toggle.
    streak: int = Field(default=0, nullable=False)
    longest_streak: int = Field(default=0, nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class HabitLog(SQLModel, table=True):
    """Completed or skipped record for a habit on a calendar day."""

    __tablename__: ClassVar[str] = "habit_log"
    __table_args__ = (
        UniqueConstraint("habit_id", "day", name="uq_habit_log_habit_day"),
        CheckConstraint(
            "status IN ('completed', 'skipped')", name="ck_habit_log_status"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(foreign_key="habit.id", nullable=False, index=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    day: date = Field(nullable=False, index=True)
    status: str = Field(nullable=False, max_length=16)

    @property
    def state(self) -> DayState:
        return DayState(self.status)
