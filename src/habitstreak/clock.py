"""Day-granularity clocks and date normalization."""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Protocol


class Clock(Protocol):
    """Supplies the current calendar day."""

    def today(self) -> date:
        ...


class SystemClock:
    """Reads the wall clock, optionally in a fixed time zone."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz

    def today(self) -> date:
        if self.tz is None:
            return date.today()
        return datetime.now(self.tz).date()


class FixedClock:
    """Clock pinned to a given day; tests move it explicitly."""

    def __init__(self, day: date):
        self.day = normalize_day(day)

    def today(self) -> date:
        return self.day

    def advance(self, days: int = 1) -> date:
        """Move the pinned day forward (or back with a negative count)."""

        self.day = self.day + timedelta(days=days)
        return self.day


def normalize_day(value: date | datetime) -> date:
    """Collapse a date or datetime to its calendar day."""

    # datetime subclasses date, so check it first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")


__all__ = ["Clock", "FixedClock", "SystemClock", "normalize_day"]
