"""Command line entry point for habitstreak."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

import click
from sqlmodel import Session

from .clock import SystemClock
from .config import BaseConfig
from .errors import HabitStreakError
from .infra.database import bootstrap_database
from .logging_config import setup_logging
from .services import auth, habits


@dataclass
class CliContext:
    config: BaseConfig
    session_factory: Callable[[], Session]
    clock: SystemClock


def _describe_error(exc: HabitStreakError) -> str:
    if exc.retryable:
        return f"Could not save right now, please try again ({exc.kind})."
    return f"Access denied: {exc}."


def _owner_id(obj: CliContext, username: str, password: str) -> int:
    user = auth.authenticate(username=username, password=password, session_factory=obj.session_factory)
    return auth.resolve_owner_id(user)


def _day(obj: CliContext, value: Optional[datetime]) -> date:
    return value.date() if value is not None else obj.clock.today()


credentials = [
    click.option("--username", "-u", required=True, envvar="HABITSTREAK_USERNAME"),
    click.option(
        "--password", "-p", prompt=True, hide_input=True, envvar="HABITSTREAK_PASSWORD"
    ),
]


def with_credentials(func):
    for option in reversed(credentials):
        func = option(func)
    return func


day_option = click.option(
    "--day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Calendar day (YYYY-MM-DD); defaults to today.",
)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Track daily habits and their streaks."""

    config = BaseConfig()
    setup_logging(config)
    _, session_factory = bootstrap_database(config)
    ctx.obj = CliContext(config=config, session_factory=session_factory, clock=config.make_clock())


@cli.command("init-db")
@click.pass_obj
def init_db(obj: CliContext) -> None:
    """Create the database schema."""

    click.echo(f"Database ready: {obj.config.DATABASE_URL}")


@cli.command("create-user")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_obj
def create_user(obj: CliContext, username: str, password: str) -> None:
    """Register a habit owner."""

    try:
        user = auth.create_user(username=username, password=password, session_factory=obj.session_factory)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created user {user.username} (id={user.id})")


@cli.command("add-habit")
@with_credentials
@click.pass_obj
def add_habit(obj: CliContext, username: str, password: str) -> None:
    """Create a new habit."""

    try:
        owner_id = _owner_id(obj, username, password)
        habit = habits.create_habit(owner_id=owner_id, session_factory=obj.session_factory)
    except HabitStreakError as exc:
        raise click.ClickException(_describe_error(exc)) from exc
    click.echo(f"Created habit {habit.id}")


@cli.command("toggle")
@click.argument("habit_id", type=int)
@day_option
@with_credentials
@click.pass_obj
def toggle(obj: CliContext, habit_id: int, day: Optional[datetime], username: str, password: str) -> None:
    """Toggle a day between done and not done."""

    try:
        owner_id = _owner_id(obj, username, password)
        result = habits.toggle_completion(
            habit_id,
            _day(obj, day),
            owner_id=owner_id,
            session_factory=obj.session_factory,
            clock=obj.clock,
            config=obj.config,
        )
    except HabitStreakError as exc:
        raise click.ClickException(_describe_error(exc)) from exc
    click.echo(
        f"Habit {habit_id} on {result.day.isoformat()}: {result.state.value} "
        f"(streak {result.streak}, longest {result.longest_streak})"
    )


@cli.command("skip")
@click.argument("habit_id", type=int)
@day_option
@with_credentials
@click.pass_obj
def skip(obj: CliContext, habit_id: int, day: Optional[datetime], username: str, password: str) -> None:
    """Mark a day as skipped."""

    try:
        owner_id = _owner_id(obj, username, password)
        result = habits.skip_day(
            habit_id,
            _day(obj, day),
            owner_id=owner_id,
            session_factory=obj.session_factory,
            config=obj.config,
        )
    except HabitStreakError as exc:
        raise click.ClickException(_describe_error(exc)) from exc
    click.echo(f"Habit {habit_id} on {result.day.isoformat()}: {result.state.value} (streak {result.streak})")


@cli.command("list")
@click.option("--days", type=click.IntRange(min=1), default=None, help="Days of history to show.")
@with_credentials
@click.pass_obj
def list_habits(obj: CliContext, days: Optional[int], username: str, password: str) -> None:
    """Show active habits with their recent days."""

    try:
        owner_id = _owner_id(obj, username, password)
        rows = habits.list_habits_with_recent_logs(
            owner_id=owner_id,
            session_factory=obj.session_factory,
            clock=obj.clock,
            days=days or obj.config.RECENT_LOG_DAYS,
        )
    except HabitStreakError as exc:
        raise click.ClickException(_describe_error(exc)) from exc

    if not rows:
        click.echo("No active habits.")
        return
    for row in rows:
        marks = ", ".join(f"{log.day.isoformat()}={log.status}" for log in row.logs) or "-"
        click.echo(
            f"Habit {row.habit.id}: streak {row.habit.streak}, "
            f"longest {row.habit.longest_streak} | {marks}"
        )


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
