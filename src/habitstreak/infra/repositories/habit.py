"""SQLModel implementations of the habit repositories."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Callable, Optional

from sqlalchemy import case, delete, update
from sqlmodel import Session, select

from ...models.habit import DayState, Habit, HabitLog


class SQLModelHabitLogStore:
    """Habit log store working inside a caller-owned session.

    Nothing here commits; the enclosing transaction decides.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_habit(self, habit_id: int, *, user_id: int, for_update: bool = False) -> Optional[Habit]:
        statement = select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
        if for_update:
            # Serializes writers per habit on backends with row locks; SQLite ignores it.
            statement = statement.with_for_update()
        return self.session.exec(statement).first()

    def get_state(self, habit_id: int, day: date) -> DayState:
        status = self.session.exec(
            select(HabitLog.status)
            .where(HabitLog.habit_id == habit_id)
            .where(HabitLog.day == day)
        ).first()
        return DayState.NONE if status is None else DayState(status)

    def insert_log(self, habit_id: int, day: date, state: DayState, *, user_id: int) -> None:
        if state is DayState.NONE:
            raise ValueError("DayState.NONE is represented by the absence of a row")
        self.session.add(
            HabitLog(habit_id=habit_id, user_id=user_id, day=day, status=state.value)
        )
        self.session.flush()

    def update_state(self, habit_id: int, day: date, *, expected: DayState, new: DayState) -> bool:
        if new is DayState.NONE:
            raise ValueError("Use delete_log to clear a day")
        result = self.session.connection().execute(
            update(HabitLog)
            .where(HabitLog.habit_id == habit_id)
            .where(HabitLog.day == day)
            .where(HabitLog.status == expected.value)
            .values(status=new.value)
        )
        return result.rowcount == 1

    def delete_log(self, habit_id: int, day: date, *, expected: DayState) -> bool:
        result = self.session.connection().execute(
            delete(HabitLog)
            .where(HabitLog.habit_id == habit_id)
            .where(HabitLog.day == day)
            .where(HabitLog.status == expected.value)
        )
        return result.rowcount == 1

    def completed_days(self, habit_id: int) -> set[date]:
        rows = self.session.exec(
            select(HabitLog.day)
            .where(HabitLog.habit_id == habit_id)
            .where(HabitLog.status == DayState.COMPLETED.value)
        ).all()
        return set(rows)

    def save_streak(self, habit_id: int, streak: int) -> Habit:
        if streak < 0:
            raise ValueError("streak cannot be negative")
        # Computed in SQL so a stale in-memory copy can never lower it.
        self.session.connection().execute(
            update(Habit)
            .where(Habit.id == habit_id)
            .values(
                streak=streak,
                longest_streak=case(
                    (Habit.longest_streak < streak, streak),
                    else_=Habit.longest_streak,
                ),
            )
        )
        habit = self.session.get(Habit, habit_id)
        self.session.refresh(habit)
        return habit


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_active(self, *, user_id: int) -> list[Habit]:
        """List only active habits, newest first."""
        with self.session_factory() as session:
            rows = list(
                session.exec(
                    select(Habit)
                    .where(Habit.user_id == user_id)
                    .where(Habit.is_active == True)  # noqa: E712
                    .order_by(Habit.created_at.desc(), Habit.id.desc())  # type: ignore[attr-defined]
                ).all()
            )
            session.expunge_all()
            return rows

    def create(self, *, user_id: int) -> Habit:
        """Create a new active habit with empty streak counters."""
        with self.session_factory() as session:
            habit = Habit(user_id=user_id)
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    def deactivate(self, habit_id: int, *, user_id: int) -> bool:
        """Mark a habit inactive, keeping its log history."""
        with self.session_factory() as session:
            habit = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if habit is None:
                return False
            habit.is_active = False
            session.add(habit)
            session.commit()
            return True

    def list_with_recent_logs(
        self, start_date: date, end_date: date, *, user_id: int
    ) -> list[tuple[Habit, list[HabitLog]]]:
        """Active habits paired with their logs in the range, newest first."""
        habits = self.list_active(user_id=user_id)
        if not habits:
            return []

        with self.session_factory() as session:
            logs = session.exec(
                select(HabitLog)
                .where(HabitLog.user_id == user_id)
                .where(HabitLog.habit_id.in_([h.id for h in habits]))  # type: ignore[union-attr]
                .where(HabitLog.day >= start_date)
                .where(HabitLog.day <= end_date)
                .order_by(HabitLog.day.desc())  # type: ignore[attr-defined]
            ).all()
            session.expunge_all()

        by_habit: dict[int, list[HabitLog]] = defaultdict(list)
        for log in logs:
            by_habit[log.habit_id].append(log)
        return [(habit, by_habit.get(habit.id, [])) for habit in habits]
