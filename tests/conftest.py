"""Pytest configuration and shared fixtures for habitstreak tests.

Each test gets its own SQLite file database so repositories, services and the
concurrency checks run against real transactions without touching a shared
database.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

import pytest
from sqlmodel import select

from habitstreak.clock import FixedClock
from habitstreak.config import BaseConfig
from habitstreak.infra.database import create_db_engine, create_session_factory, init_database
from habitstreak.models import Habit, HabitLog, User

TODAY = date(2024, 3, 15)


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def config(tmp_path, monkeypatch) -> BaseConfig:
    """Config pointing at a temporary data directory and database."""

    monkeypatch.setenv("HABITSTREAK_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("HABITSTREAK_DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("HABITSTREAK_DEV_MODE", "false")
    monkeypatch.setenv("HABITSTREAK_RETRY_BACKOFF", "0.01")
    monkeypatch.delenv("HABITSTREAK_TIMEZONE", raising=False)
    monkeypatch.delenv("HABITSTREAK_MAX_WRITE_ATTEMPTS", raising=False)
    monkeypatch.delenv("HABITSTREAK_RECENT_LOG_DAYS", raising=False)
    return BaseConfig()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_engine(config):
    """Create an isolated SQLite file database for each test.

    Yields:
        Engine: engine with all tables created
    """
    engine = create_db_engine(config)
    init_database(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Factory for sessions that commit on clean exit and roll back on error."""

    return create_session_factory(db_engine)


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to a fixed day."""

    return FixedClock(TODAY)


# =============================================================================
# Test Data Factories
# =============================================================================


def _make_user(session_factory, username: str) -> User:
    with session_factory() as session:
        user = User(username=username, password_hash="dummy-hash")
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


@pytest.fixture
def user(session_factory) -> User:
    """Default habit owner."""

    return _make_user(session_factory, "tester")


@pytest.fixture
def other_user(session_factory) -> User:
    """A second owner whose habits must stay invisible to ``user``."""

    return _make_user(session_factory, "someone-else")


@pytest.fixture
def habit_factory(session_factory, user):
    """Factory for creating habits, optionally with cached streak values."""

    def _create_habit(
        *,
        owner: User | None = None,
        streak: int = 0,
        longest_streak: int = 0,
        is_active: bool = True,
        created_at: datetime | None = None,
    ) -> Habit:
        owner = owner or user
        with session_factory() as session:
            habit = Habit(
                user_id=owner.id,
                streak=streak,
                longest_streak=longest_streak,
                is_active=is_active,
            )
            if created_at is not None:
                habit.created_at = created_at
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    return _create_habit


@pytest.fixture
def log_factory(session_factory):
    """Insert log rows directly, bypassing the services."""

    def _create_log(habit: Habit, day: date, status: str = "completed") -> HabitLog:
        with session_factory() as session:
            log = HabitLog(habit_id=habit.id, user_id=habit.user_id, day=day, status=status)
            session.add(log)
            session.commit()
            session.refresh(log)
            session.expunge(log)
            return log

    return _create_log


@pytest.fixture
def fetch_habit(session_factory):
    """Reload a habit row from the database."""

    def _fetch(habit_id: int) -> Habit:
        with session_factory() as session:
            habit = session.get(Habit, habit_id)
            session.expunge(habit)
            return habit

    return _fetch


@pytest.fixture
def fetch_logs(session_factory):
    """Return all log rows for a habit and day."""

    def _fetch(habit_id: int, day: date) -> list[HabitLog]:
        with session_factory() as session:
            rows = list(
                session.exec(
                    select(HabitLog).where(HabitLog.habit_id == habit_id, HabitLog.day == day)
                ).all()
            )
            session.expunge_all()
            return rows

    return _fetch


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers installed by setup_logging so they don't outlive the test."""

    yield
    logger = logging.getLogger("habitstreak")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
