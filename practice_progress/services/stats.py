"""Dashboard statistics per period.

Period figures are the live aggregate minus the latest snapshot taken on or
before the period's baseline date (yesterday for ``day``, a week ago for
``week``, a month ago for ``month``). ``all`` uses the aggregate as is.
"""

import calendar
import uuid
from datetime import date, timedelta

from practice_progress.schemas.attempt import StudentAggregate
from practice_progress.schemas.progress import ProgressSnapshot, StatsRead
from practice_progress.services.interfaces import AttemptStore, SnapshotStore
from practice_progress.services.metrics import accuracy_percent, format_practice_time
from practice_progress.services.streaks import streak_as_of

PERIODS = ("day", "week", "month", "all")


def _month_before(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def baseline_date(period: str, today: date) -> date | None:
    """Last day *not* counted in the period; None for ``all``."""
    if period == "day":
        return today - timedelta(days=1)
    if period == "week":
        return today - timedelta(days=7)
    if period == "month":
        return _month_before(today)
    if period == "all":
        return None
    raise ValueError(f"unknown period '{period}', expected one of {', '.join(PERIODS)}")


def compute_stats(
    aggregate: StudentAggregate,
    baseline: ProgressSnapshot | None,
    period: str,
    today: date,
) -> StatsRead:
    if period not in PERIODS:
        raise ValueError(f"unknown period '{period}', expected one of {', '.join(PERIODS)}")

    attempts = aggregate.total_attempts
    correct = aggregate.total_correct
    seconds = aggregate.total_practice_seconds
    if period != "all" and baseline is not None:
        attempts = max(0, attempts - baseline.total_attempts)
        correct = max(0, correct - baseline.total_correct)
        seconds = max(0, seconds - baseline.total_practice_seconds)

    return StatsRead(
        period=period,
        problems_solved=attempts,
        total_correct=correct,
        accuracy_rate=accuracy_percent(correct, attempts),
        practice_seconds=seconds,
        total_practice_time=format_practice_time(seconds),
        current_streak=streak_as_of(
            aggregate.last_activity_date, aggregate.current_streak_days, today
        ),
        best_streak=aggregate.best_streak_days,
    )


def student_stats(
    attempts: AttemptStore,
    snapshots: SnapshotStore,
    student_id: uuid.UUID,
    period: str,
    today: date,
) -> StatsRead:
    """Look up the aggregate and baseline snapshot, then ``compute_stats``."""
    aggregate = attempts.get_aggregate(student_id) or StudentAggregate.empty(student_id)
    cutoff = baseline_date(period, today)
    baseline = snapshots.latest_on_or_before(student_id, cutoff) if cutoff else None
    return compute_stats(aggregate, baseline, period, today)
