"""Weekly report composition from daily snapshots."""

import uuid
from datetime import date, timedelta
from typing import Iterable

from practice_progress.schemas.progress import ProgressSnapshot, WeeklyReportData
from practice_progress.services.metrics import accuracy_percent

WEEK_DAYS = 7


def week_start_for(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def compose(
    student_id: uuid.UUID,
    week_start: date,
    snapshots: Iterable[ProgressSnapshot],
    homework_completed: int,
    homework_total: int,
) -> WeeklyReportData:
    """Fold the week's snapshots into a report.

    Days without a snapshot count as no activity. The streak is the one
    recorded on the most recent snapshot of the window.
    Homework counts must satisfy ``0 <= homework_completed <= homework_total``.
    """
    if homework_completed < 0 or homework_total < 0 or homework_completed > homework_total:
        raise ValueError(
            f"invalid homework counts: {homework_completed} completed of {homework_total}"
        )

    week_end = week_start + timedelta(days=WEEK_DAYS - 1)
    window = sorted(
        (
            s
            for s in snapshots
            if s.student_id == student_id and week_start <= s.snapshot_date <= week_end
        ),
        key=lambda s: s.snapshot_date,
    )

    attempts = sum(s.daily_attempts for s in window)
    correct = sum(s.daily_correct for s in window)
    seconds = sum(s.daily_practice_seconds for s in window)

    return WeeklyReportData(
        student_id=student_id,
        week_start=week_start,
        week_end=week_end,
        problems_solved=attempts,
        total_correct=correct,
        accuracy_rate=accuracy_percent(correct, attempts),
        practice_time_seconds=seconds,
        current_streak=window[-1].current_streak if window else 0,
        days_active=sum(1 for s in window if s.daily_practice_seconds > 0),
        completed_homework_count=homework_completed,
        total_homework_count=homework_total,
    )
