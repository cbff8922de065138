"""Current-streak calculation."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Collection

ONE_DAY = timedelta(days=1)


def compute_current_streak(completed_days: Collection[date], today: date) -> int:
    """Count consecutive completed days ending today, with one day of grace.

    When today is not completed yet the count starts from yesterday, so a
    streak stays live until a whole day has been missed. Skipped days must not
    be passed in; they break a streak exactly like missing days.
    """

    days = completed_days if isinstance(completed_days, (set, frozenset)) else set(completed_days)

    cursor = today
    if cursor not in days:
        cursor -= ONE_DAY

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= ONE_DAY
    return streak


__all__ = ["compute_current_streak"]
