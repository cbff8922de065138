"""Tests for marking days skipped."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from habitstreak.errors import NotFoundError, UnauthorizedError
from habitstreak.models import DayState
from habitstreak.services.habits import CompletionToggle, SkipMarker, skip_day

TODAY = date(2024, 3, 15)


@pytest.fixture
def marker(session_factory):
    return SkipMarker(session_factory, max_attempts=2, backoff=0.0)


class TestSkipUpsert:
    def test_creates_skipped_row(self, marker, habit_factory, user, fetch_logs):
        habit = habit_factory()

        result = marker.skip(habit.id, TODAY, owner_id=user.id)

        assert result.success is True
        assert result.state is DayState.SKIPPED
        assert [log.status for log in fetch_logs(habit.id, TODAY)] == ["skipped"]

    def test_completed_day_becomes_skipped(self, marker, habit_factory, log_factory, user, fetch_logs):
        habit = habit_factory()
        original = log_factory(habit, TODAY, "completed")

        marker.skip(habit.id, TODAY, owner_id=user.id)

        logs = fetch_logs(habit.id, TODAY)
        assert len(logs) == 1
        assert logs[0].id == original.id
        assert logs[0].status == "skipped"

    def test_skipping_twice_keeps_one_row(self, marker, habit_factory, user, fetch_logs):
        habit = habit_factory()

        marker.skip(habit.id, TODAY, owner_id=user.id)
        result = marker.skip(habit.id, TODAY, owner_id=user.id)

        assert result.state is DayState.SKIPPED
        assert len(fetch_logs(habit.id, TODAY)) == 1


class TestSkipLeavesStreakAlone:
    def test_cached_streak_is_not_recomputed(self, marker, habit_factory, user, fetch_habit):
        habit = habit_factory(streak=3, longest_streak=3)

        result = marker.skip(habit.id, TODAY, owner_id=user.id)

        assert result.streak == 3
        stored = fetch_habit(habit.id)
        assert stored.streak == 3
        assert stored.longest_streak == 3

    def test_skipping_a_completed_today_leaves_stale_streak(
        self, marker, habit_factory, session_factory, clock, user, fetch_habit
    ):
        habit = habit_factory()
        toggler = CompletionToggle(session_factory, clock, backoff=0.0)
        toggler.toggle(habit.id, TODAY - timedelta(days=1), owner_id=user.id)
        toggler.toggle(habit.id, TODAY, owner_id=user.id)
        assert fetch_habit(habit.id).streak == 2

        marker.skip(habit.id, TODAY, owner_id=user.id)

        assert fetch_habit(habit.id).streak == 2

    def test_next_toggle_refreshes_after_skip(self, marker, habit_factory, session_factory, clock, user):
        habit = habit_factory()
        toggler = CompletionToggle(session_factory, clock, backoff=0.0)
        toggler.toggle(habit.id, TODAY - timedelta(days=1), owner_id=user.id)
        marker.skip(habit.id, TODAY - timedelta(days=1), owner_id=user.id)

        # Toggling an unrelated day recomputes from completed rows only
        result = toggler.toggle(habit.id, TODAY - timedelta(days=7), owner_id=user.id)

        assert result.streak == 0


class TestSkipOwnership:
    def test_other_owner_raises_not_found(self, marker, habit_factory, other_user, user, fetch_logs):
        habit = habit_factory(owner=other_user)

        with pytest.raises(NotFoundError):
            marker.skip(habit.id, TODAY, owner_id=user.id)
        assert fetch_logs(habit.id, TODAY) == []

    def test_no_owner_raises_unauthorized(self, marker, habit_factory):
        habit = habit_factory()
        with pytest.raises(UnauthorizedError):
            marker.skip(habit.id, TODAY, owner_id=None)


def test_skip_day_wrapper(session_factory, config, habit_factory, user):
    habit = habit_factory(streak=4, longest_streak=6)

    payload = skip_day(
        habit.id, TODAY, owner_id=user.id, session_factory=session_factory, config=config
    ).as_dict()

    assert payload == {
        "habit_id": habit.id,
        "day": "2024-03-15",
        "state": "skipped",
        "streak": 4,
        "success": True,
    }


def test_skip_day_requires_explicit_config(session_factory, habit_factory, user, tmp_path, monkeypatch, fetch_logs):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("HABITSTREAK_DATA_DIR", raising=False)
    habit = habit_factory()

    with pytest.raises(TypeError):
        skip_day(habit.id, TODAY, owner_id=user.id, session_factory=session_factory)

    assert not (tmp_path / "instance").exists()
    assert fetch_logs(habit.id, TODAY) == []
