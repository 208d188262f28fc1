"""Tests for weekly report composition."""

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from practice_progress.schemas.progress import ProgressSnapshot
from practice_progress.services.weekly_report import compose, week_start_for

MONDAY = date(2026, 3, 2)
CREATED = datetime(2026, 3, 9, tzinfo=timezone.utc)


def _snapshot(student_id, day_offset, attempts, correct, seconds=600, streak=1):
    return ProgressSnapshot(
        student_id=student_id,
        snapshot_date=MONDAY + timedelta(days=day_offset),
        total_attempts=0,
        total_correct=0,
        total_practice_seconds=0,
        current_streak=streak,
        daily_attempts=attempts,
        daily_correct=correct,
        daily_practice_seconds=seconds,
        created_at=CREATED,
    )


def test_week_start_is_monday():
    assert week_start_for(date(2026, 3, 2)) == MONDAY
    assert week_start_for(date(2026, 3, 5)) == MONDAY
    assert week_start_for(date(2026, 3, 8)) == MONDAY
    assert week_start_for(date(2026, 3, 9)) == date(2026, 3, 9)


def test_three_active_days():
    student = uuid.uuid4()
    snapshots = [
        _snapshot(student, 0, 5, 4, streak=1),
        _snapshot(student, 2, 3, 2, streak=1),
        _snapshot(student, 3, 2, 2, streak=2),
    ]

    report = compose(student, MONDAY, snapshots, homework_completed=2, homework_total=3)

    assert report.problems_solved == 10
    assert report.total_correct == 8
    assert report.accuracy_rate == 80
    assert report.practice_time_seconds == 1800
    assert report.days_active == 3
    assert report.current_streak == 2
    assert report.week_end == date(2026, 3, 8)
    assert (report.completed_homework_count, report.total_homework_count) == (2, 3)


def test_zero_attempt_week():
    student = uuid.uuid4()
    report = compose(student, MONDAY, [], homework_completed=0, homework_total=0)
    assert report.problems_solved == 0
    assert report.accuracy_rate == 0
    assert report.days_active == 0
    assert report.current_streak == 0


def test_snapshots_outside_window_or_of_other_students_are_ignored():
    student = uuid.uuid4()
    snapshots = [
        _snapshot(student, -1, 50, 50),
        _snapshot(student, 7, 50, 50),
        _snapshot(uuid.uuid4(), 1, 50, 50),
        _snapshot(student, 6, 4, 1, streak=4),
    ]
    report = compose(student, MONDAY, snapshots, homework_completed=0, homework_total=1)
    assert report.problems_solved == 4
    assert report.accuracy_rate == 25
    assert report.current_streak == 4


def test_unordered_input_uses_latest_streak():
    student = uuid.uuid4()
    snapshots = [_snapshot(student, 4, 1, 1, streak=5), _snapshot(student, 1, 1, 1, streak=2)]
    assert compose(student, MONDAY, snapshots, 0, 0).current_streak == 5


def test_accuracy_rounds_half_up():
    student = uuid.uuid4()
    report = compose(student, MONDAY, [_snapshot(student, 0, 8, 1)], 0, 0)
    assert report.accuracy_rate == 13


@pytest.mark.parametrize("completed, total", [(-1, 3), (4, 3), (0, -1)])
def test_invalid_homework_counts(completed, total):
    with pytest.raises(ValueError):
        compose(uuid.uuid4(), MONDAY, [], completed, total)
