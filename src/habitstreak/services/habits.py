"""Habit completion toggling, skipping and streak upkeep."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlmodel import Session

from ..clock import Clock, normalize_day
from ..config import BaseConfig
from ..domain.repositories.habit import HabitLogStore, HabitRepository
from ..errors import ConflictError, NotFoundError, UnauthorizedError
from ..infra.database import run_in_transaction
from ..infra.repositories.habit import SQLModelHabitLogStore, SQLModelHabitRepository
from ..logging_config import get_logger
from ..models.habit import DayState, Habit, HabitLog
from .streaks import compute_current_streak

logger = get_logger("services.habits")

SessionFactory = Callable[[], Session]
StoreFactory = Callable[[Session], HabitLogStore]

# Resulting state for each existing state; toggling cycles, it never converges.
TOGGLE_TRANSITIONS = {
    DayState.NONE: DayState.COMPLETED,
    DayState.COMPLETED: DayState.NONE,
    DayState.SKIPPED: DayState.COMPLETED,
}


@dataclass
class ToggleResult:
    habit_id: int
    day: date
    state: DayState
    streak: int
    longest_streak: int
    success: bool = True

    def as_dict(self) -> dict:
        data = asdict(self)
        data["day"] = self.day.isoformat()
        data["state"] = self.state.value
        return data


@dataclass
class SkipResult:
    habit_id: int
    day: date
    state: DayState
    streak: int
    success: bool = True

    def as_dict(self) -> dict:
        data = asdict(self)
        data["day"] = self.day.isoformat()
        data["state"] = self.state.value
        return data


@dataclass
class HabitWithLogs:
    habit: Habit
    logs: list[HabitLog] = field(default_factory=list)


def require_owner(owner_id: Optional[int]) -> int:
    """Return the owner id or raise when no identity was resolved."""

    if owner_id is None:
        raise UnauthorizedError("No authenticated owner")
    return owner_id


class _Observed:
    """Remembers the first state seen so retried attempts apply the same transition."""

    def __init__(self) -> None:
        self.state: Optional[DayState] = None

    def check(self, current: DayState, *, habit_id: int, day: date) -> DayState:
        if self.state is None:
            self.state = current
        elif current is not self.state:
            logger.warning(
                "Day changed between attempts",
                extra={"habit_id": habit_id, "day": day.isoformat(),
                       "expected": self.state.value, "found": current.value},
            )
            raise ConflictError(
                "Habit day was changed by another request; try again",
                habit_id=habit_id,
                day=day,
            )
        return current


class CompletionToggle:
    """Cycles a day between no record and completed, then refreshes the streak.

    The log mutation, the streak recompute and the cached streak write happen
    in one transaction. This is the only writer of ``Habit.streak`` and
    ``Habit.longest_streak``.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock,
        *,
        max_attempts: int = 3,
        backoff: float = 0.05,
        store_factory: StoreFactory = SQLModelHabitLogStore,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.store_factory = store_factory
        self.max_attempts = max_attempts
        self.backoff = backoff

    def toggle(self, habit_id: int, day: date | datetime, *, owner_id: Optional[int]) -> ToggleResult:
        owner = require_owner(owner_id)
        day = normalize_day(day)
        observed = _Observed()

        def work(session: Session) -> ToggleResult:
            store = self.store_factory(session)
            if store.get_habit(habit_id, user_id=owner, for_update=True) is None:
                raise NotFoundError("Habit not found", habit_id=habit_id)

            current = observed.check(store.get_state(habit_id, day), habit_id=habit_id, day=day)
            target = TOGGLE_TRANSITIONS[current]

            if current is DayState.NONE:
                store.insert_log(habit_id, day, target, user_id=owner)
                applied = True
            elif target is DayState.NONE:
                applied = store.delete_log(habit_id, day, expected=current)
            else:
                applied = store.update_state(habit_id, day, expected=current, new=target)
            if not applied:
                raise ConflictError(
                    "Habit day was changed by another request; try again",
                    habit_id=habit_id,
                    day=day,
                )

            streak = compute_current_streak(store.completed_days(habit_id), self.clock.today())
            habit = store.save_streak(habit_id, streak)

            logger.info(
                "Habit day toggled",
                extra={
                    "habit_id": habit_id,
                    "day": day.isoformat(),
                    "from_state": current.value,
                    "to_state": target.value,
                    "streak": habit.streak,
                },
            )
            return ToggleResult(
                habit_id=habit_id,
                day=day,
                state=target,
                streak=habit.streak,
                longest_streak=habit.longest_streak,
            )

        return run_in_transaction(
            self.session_factory,
            work,
            attempts=self.max_attempts,
            backoff=self.backoff,
            operation="toggle",
        )


class SkipMarker:
    """Marks a day skipped.

    The cached streak is left untouched: skipped days count as missing to the
    streak calculation, and the next toggle refreshes the cache.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        max_attempts: int = 3,
        backoff: float = 0.05,
        store_factory: StoreFactory = SQLModelHabitLogStore,
    ):
        self.session_factory = session_factory
        self.store_factory = store_factory
        self.max_attempts = max_attempts
        self.backoff = backoff

    def skip(self, habit_id: int, day: date | datetime, *, owner_id: Optional[int]) -> SkipResult:
        owner = require_owner(owner_id)
        day = normalize_day(day)
        observed = _Observed()

        def work(session: Session) -> SkipResult:
            store = self.store_factory(session)
            habit = store.get_habit(habit_id, user_id=owner, for_update=True)
            if habit is None:
                raise NotFoundError("Habit not found", habit_id=habit_id)

            current = observed.check(store.get_state(habit_id, day), habit_id=habit_id, day=day)
            if current is DayState.NONE:
                store.insert_log(habit_id, day, DayState.SKIPPED, user_id=owner)
            elif current is not DayState.SKIPPED:
                if not store.update_state(habit_id, day, expected=current, new=DayState.SKIPPED):
                    raise ConflictError(
                        "Habit day was changed by another request; try again",
                        habit_id=habit_id,
                        day=day,
                    )

            logger.info(
                "Habit day skipped",
                extra={
                    "habit_id": habit_id,
                    "day": day.isoformat(),
                    "from_state": current.value,
                    "to_state": DayState.SKIPPED.value,
                    "streak": habit.streak,
                },
            )
            return SkipResult(habit_id=habit_id, day=day, state=DayState.SKIPPED, streak=habit.streak)

        return run_in_transaction(
            self.session_factory,
            work,
            attempts=self.max_attempts,
            backoff=self.backoff,
            operation="skip",
        )


def toggle_completion(
    habit_id: int,
    day: date | datetime,
    *,
    owner_id: Optional[int],
    session_factory: SessionFactory,
    clock: Clock,
    config: BaseConfig,
) -> ToggleResult:
    """Toggle a day's completion and return the refreshed streak."""

    toggler = CompletionToggle(
        session_factory,
        clock,
        max_attempts=config.MAX_WRITE_ATTEMPTS,
        backoff=config.RETRY_BACKOFF_SECONDS,
    )
    return toggler.toggle(habit_id, day, owner_id=owner_id)


def skip_day(
    habit_id: int,
    day: date | datetime,
    *,
    owner_id: Optional[int],
    session_factory: SessionFactory,
    config: BaseConfig,
) -> SkipResult:
    """Mark a day skipped without touching the cached streak."""

    marker = SkipMarker(
        session_factory,
        max_attempts=config.MAX_WRITE_ATTEMPTS,
        backoff=config.RETRY_BACKOFF_SECONDS,
    )
    return marker.skip(habit_id, day, owner_id=owner_id)


def list_habits_with_recent_logs(
    *,
    owner_id: Optional[int],
    session_factory: SessionFactory,
    clock: Clock,
    days: int = 7,
) -> list[HabitWithLogs]:
    """Active habits with their logs from the last ``days`` days, newest first."""

    owner = require_owner(owner_id)
    if days < 1:
        raise ValueError("days must be >= 1")
    today = clock.today()
    start = today - timedelta(days=days - 1)
    repo: HabitRepository = SQLModelHabitRepository(session_factory)
    return [
        HabitWithLogs(habit=habit, logs=logs)
        for habit, logs in repo.list_with_recent_logs(start, today, user_id=owner)
    ]


def get_habit(habit_id: int, *, owner_id: Optional[int], session_factory: SessionFactory) -> Habit:
    """Return the owner's habit or raise NotFoundError."""

    owner = require_owner(owner_id)
    habit = SQLModelHabitRepository(session_factory).get_by_id(habit_id, user_id=owner)
    if habit is None:
        raise NotFoundError("Habit not found", habit_id=habit_id)
    return habit


def create_habit(*, owner_id: Optional[int], session_factory: SessionFactory) -> Habit:
    """Create an active habit with a zero streak."""

    owner = require_owner(owner_id)
    habit = SQLModelHabitRepository(session_factory).create(user_id=owner)
    logger.info("Habit created", extra={"habit_id": habit.id, "user_id": owner})
    return habit


def deactivate_habit(habit_id: int, *, owner_id: Optional[int], session_factory: SessionFactory) -> None:
    """Hide a habit from listings while keeping its history."""

    owner = require_owner(owner_id)
    if not SQLModelHabitRepository(session_factory).deactivate(habit_id, user_id=owner):
        raise NotFoundError("Habit not found", habit_id=habit_id)
    logger.info("Habit deactivated", extra={"habit_id": habit_id, "user_id": owner})


__all__ = [
    "CompletionToggle",
    "HabitWithLogs",
    "SkipMarker",
    "SkipResult",
    "ToggleResult",
    "TOGGLE_TRANSITIONS",
    "create_habit",
    "deactivate_habit",
    "get_habit",
    "list_habits_with_recent_logs",
    "require_owner",
    "skip_day",
    "toggle_completion",
]
