"""Tests for dashboard statistics."""

import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.orm import Session

from practice_progress.db.models import StudentAggregateRow
from practice_progress.db.stores import SqlAttemptStore, SqlSnapshotStore
from practice_progress.schemas.attempt import StudentAggregate
from practice_progress.schemas.progress import ProgressSnapshot
from practice_progress.services.metrics import accuracy_percent, format_practice_time
from practice_progress.services.stats import baseline_date, compute_stats, student_stats

TODAY = date(2026, 3, 31)


def _aggregate(student_id: uuid.UUID, **overrides) -> StudentAggregate:
    fields = {
        "student_id": student_id,
        "total_attempts": 30,
        "total_correct": 24,
        "total_practice_seconds": 3900,
        "current_streak_days": 4,
        "best_streak_days": 9,
        "last_activity_date": TODAY,
    }
    fields.update(overrides)
    return StudentAggregate(**fields)


def _baseline(student_id: uuid.UUID, day: date) -> ProgressSnapshot:
    return ProgressSnapshot(
        student_id=student_id,
        snapshot_date=day,
        total_attempts=20,
        total_correct=15,
        total_practice_seconds=900,
        current_streak=1,
        created_at=datetime(2026, 3, 25, tzinfo=timezone.utc),
    )


class TestHelpers:
    @pytest.mark.parametrize(
        "seconds, expected", [(0, "0m"), (59, "0m"), (300, "5m"), (3600, "1h 0m"), (3900, "1h 5m")]
    )
    def test_format_practice_time(self, seconds, expected):
        assert format_practice_time(seconds) == expected

    def test_accuracy_percent(self):
        assert accuracy_percent(8, 10) == 80
        assert accuracy_percent(1, 8) == 13
        assert accuracy_percent(2, 3) == 67
        assert accuracy_percent(0, 0) == 0

    def test_baseline_dates(self):
        assert baseline_date("day", TODAY) == date(2026, 3, 30)
        assert baseline_date("week", TODAY) == date(2026, 3, 24)
        assert baseline_date("month", TODAY) == date(2026, 2, 28)
        assert baseline_date("month", date(2026, 1, 15)) == date(2025, 12, 15)
        assert baseline_date("all", TODAY) is None

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            baseline_date("year", TODAY)


class TestComputeStats:
    def test_period_is_difference_from_baseline(self):
        student = uuid.uuid4()
        stats = compute_stats(_aggregate(student), _baseline(student, date(2026, 3, 24)), "week", TODAY)

        assert stats.problems_solved == 10
        assert stats.total_correct == 9
        assert stats.accuracy_rate == 90
        assert stats.practice_seconds == 3000
        assert stats.total_practice_time == "50m"
        assert stats.current_streak == 4
        assert stats.best_streak == 9

    def test_all_uses_totals(self):
        student = uuid.uuid4()
        stats = compute_stats(_aggregate(student), None, "all", TODAY)
        assert stats.problems_solved == 30
        assert stats.accuracy_rate == 80
        assert stats.total_practice_time == "1h 5m"

    def test_no_baseline_counts_everything(self):
        student = uuid.uuid4()
        stats = compute_stats(_aggregate(student), None, "month", TODAY)
        assert stats.problems_solved == 30

    def test_broken_streak_reads_zero(self):
        student = uuid.uuid4()
        stats = compute_stats(
            _aggregate(student, last_activity_date=date(2026, 3, 28)), None, "all", TODAY
        )
        assert stats.current_streak == 0
        assert stats.best_streak == 9


def test_student_stats_reads_stores(db: Session):
    student = uuid.uuid4()
    snapshots = SqlSnapshotStore(db)
    snapshots.insert_or_get(_baseline(student, date(2026, 3, 29)))
    snapshots.insert_or_get(_baseline(student, date(2026, 3, 20)).model_copy(update={"total_attempts": 2}))

    # no aggregate yet: everything is zero
    empty = student_stats(SqlAttemptStore(db), snapshots, student, "all", TODAY)
    assert empty.problems_solved == 0
    assert empty.total_practice_time == "0m"

    week = student_stats(SqlAttemptStore(db), snapshots, uuid.uuid4(), "week", TODAY)
    assert week.problems_solved == 0

    # day baseline is the latest snapshot on or before yesterday (the 29th)
    db.add(
        StudentAggregateRow(
            student_id=student,
            total_attempts=30,
            total_correct=24,
            total_practice_seconds=3900,
            current_streak_days=4,
            best_streak_days=9,
            last_activity_date=TODAY,
        )
    )
    db.commit()
    day = student_stats(SqlAttemptStore(db), snapshots, student, "day", TODAY)
    assert day.problems_solved == 10
    assert day.accuracy_rate == 90
