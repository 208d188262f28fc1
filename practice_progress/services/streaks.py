"""Daily practice streaks.

A streak counts consecutive calendar days with at least one attempt.
Everything here is a pure function of dates; ordering violations are
rejected by the recorder before these run.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable

_ONE_DAY = timedelta(days=1)


def activity_date(occurred_at: datetime, tz: tzinfo) -> date:
    """Calendar day an event belongs to, cut in the activity timezone."""
    return occurred_at.astimezone(tz).date()


def update(
    previous_last_activity_date: date | None,
    previous_streak: int,
    previous_best: int,
    new_activity_date: date,
) -> tuple[int, int]:
    """Return ``(new_streak, new_best)`` after activity on ``new_activity_date``.

    Same day keeps the streak, the next day extends it, any gap restarts
    it at 1. The first ever activity yields ``(1, 1)``.
    """
    if previous_last_activity_date is None:
        streak = 1
    elif new_activity_date == previous_last_activity_date:
        streak = previous_streak
    elif new_activity_date == previous_last_activity_date + _ONE_DAY:
        streak = previous_streak + 1
    else:
        streak = 1
    return streak, max(previous_best, streak)


def streak_as_of(last_activity_date: date | None, streak: int, day: date) -> int:
    """Streak as seen on ``day`` (on or after the last activity).

    A streak survives until the end of the day after its last activity.
    """
    if last_activity_date is None:
        return 0
    if day - last_activity_date > _ONE_DAY:
        return 0
    return streak


def best_streak(dates: Iterable[date]) -> int:
    """Longest run of consecutive days in an arbitrary collection of dates."""
    best = 0
    run = 0
    previous: date | None = None
    for day in sorted(set(dates)):
        run = run + 1 if previous is not None and day - previous == _ONE_DAY else 1
        best = max(best, run)
        previous = day
    return best
