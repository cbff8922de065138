"""Concurrent toggles against a real SQLite file database."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from habitstreak.errors import ConflictError, TransientError
from habitstreak.infra.repositories.habit import SQLModelHabitLogStore
from habitstreak.services.habits import CompletionToggle
from habitstreak.services.streaks import compute_current_streak

TODAY = date(2024, 3, 15)


@pytest.fixture
def lockstep(monkeypatch):
    """Make both threads observe the day's state before either writes."""

    barrier = threading.Barrier(2, timeout=10)
    seen = threading.local()
    original = SQLModelHabitLogStore.get_state

    def get_state(self, habit_id, day):
        state = original(self, habit_id, day)
        if not getattr(seen, "waited", False):
            seen.waited = True
            barrier.wait()
        return state

    monkeypatch.setattr(SQLModelHabitLogStore, "get_state", get_state)
    return barrier


def _run_pair(toggler, calls):
    def attempt(args):
        habit_id, day, owner_id = args
        try:
            return toggler.toggle(habit_id, day, owner_id=owner_id)
        except (ConflictError, TransientError) as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        return list(pool.map(attempt, calls))


def test_simultaneous_toggles_of_same_day_leave_one_row(
    session_factory, clock, habit_factory, user, fetch_logs, fetch_habit, lockstep
):
    habit = habit_factory()
    toggler = CompletionToggle(session_factory, clock, max_attempts=3, backoff=0.01)

    outcomes = _run_pair(toggler, [(habit.id, TODAY, user.id)] * 2)

    logs = fetch_logs(habit.id, TODAY)
    assert len(logs) == 1
    assert logs[0].status == "completed"

    failures = [o for o in outcomes if isinstance(o, Exception)]
    successes = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (ConflictError, TransientError))
    assert fetch_habit(habit.id).streak == 1


def test_simultaneous_toggles_of_different_days_keep_streak_consistent(
    session_factory, clock, habit_factory, user, fetch_habit, lockstep
):
    habit = habit_factory()
    toggler = CompletionToggle(session_factory, clock, max_attempts=3, backoff=0.01)
    yesterday = TODAY - timedelta(days=1)

    outcomes = _run_pair(toggler, [(habit.id, TODAY, user.id), (habit.id, yesterday, user.id)])

    assert not any(isinstance(o, Exception) for o in outcomes)
    stored = fetch_habit(habit.id)
    assert stored.streak == compute_current_streak({TODAY, yesterday}, TODAY) == 2
    assert stored.longest_streak >= stored.streak
