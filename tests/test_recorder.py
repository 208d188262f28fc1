"""Tests for attempt validation and aggregate updates."""

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from practice_progress.db.models import ExerciseAttempt
from practice_progress.db.stores import SqlAttemptStore
from practice_progress.exceptions import DuplicateAttempt, InvalidAttempt
from practice_progress.schemas.attempt import AttemptEvent, StudentAggregate
from practice_progress.services.recorder import AttemptRecorder, parse_attempt

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ── Helpers ────────────────────────────────────────────────────────────────────


def _event(student_id: uuid.UUID, at: datetime = START, **overrides) -> AttemptEvent:
    fields = {
        "student_id": student_id,
        "exercise_id": uuid.uuid4(),
        "occurred_at": at,
        "score": 80,
        "time_spent_seconds": 120,
        "correct_count": 4,
        "total_count": 5,
    }
    fields.update(overrides)
    return AttemptEvent(**fields)


def _recorder(db: Session) -> AttemptRecorder:
    return AttemptRecorder(SqlAttemptStore(db), tz=timezone.utc)


# ── Accepted events ────────────────────────────────────────────────────────────


class TestRecord:
    def test_first_attempt_creates_aggregate(self, db: Session):
        student = uuid.uuid4()
        aggregate = _recorder(db).record(_event(student))

        assert aggregate.total_attempts == 5
        assert aggregate.total_correct == 4
        assert aggregate.total_practice_seconds == 120
        assert aggregate.current_streak_days == 1
        assert aggregate.best_streak_days == 1
        assert aggregate.last_activity_date == date(2026, 3, 2)
        assert aggregate.accuracy == 80

        stored = SqlAttemptStore(db).get_aggregate(student)
        assert stored.model_dump() == aggregate.model_dump()
        assert db.query(ExerciseAttempt).filter_by(student_id=student).count() == 1

    def test_counters_accumulate(self, db: Session):
        student = uuid.uuid4()
        recorder = _recorder(db)
        recorder.record(_event(student))
        aggregate = recorder.record(
            _event(student, START + timedelta(hours=1), correct_count=1, total_count=3)
        )

        assert aggregate.total_attempts == 8
        assert aggregate.total_correct == 5
        assert aggregate.total_practice_seconds == 240
        assert aggregate.day_attempts == 8
        assert aggregate.current_streak_days == 1

    def test_new_day_restarts_day_counters(self, db: Session):
        student = uuid.uuid4()
        recorder = _recorder(db)
        recorder.record(_event(student))
        aggregate = recorder.record(_event(student, START + timedelta(days=1), total_count=2, correct_count=2))

        assert aggregate.day_attempts == 2
        assert aggregate.day_correct == 2
        assert aggregate.day_practice_seconds == 120
        assert aggregate.current_streak_days == 2

    def test_equal_timestamp_is_accepted(self, db: Session):
        student = uuid.uuid4()
        recorder = _recorder(db)
        recorder.record(_event(student))
        aggregate = recorder.record(_event(student))
        assert aggregate.total_attempts == 10

    def test_correct_never_exceeds_attempts(self, db: Session):
        student = uuid.uuid4()
        recorder = _recorder(db)
        for i, (correct, total) in enumerate([(0, 0), (3, 3), (0, 7), (10, 10), (2, 9)]):
            aggregate = recorder.record(
                _event(student, START + timedelta(hours=i), correct_count=correct, total_count=total)
            )
            assert aggregate.total_correct <= aggregate.total_attempts

    def test_streak_sequence_across_days(self, db: Session):
        student = uuid.uuid4()
        recorder = _recorder(db)
        streaks = [
            recorder.record(_event(student, START + timedelta(days=offset, hours=i))).current_streak_days
            for i, offset in enumerate((0, 1, 1, 3))
        ]
        assert streaks == [1, 2, 2, 1]


# ── Rejections ─────────────────────────────────────────────────────────────────


class TestRejections:
    def test_correct_above_total(self, db: Session):
        student = uuid.uuid4()
        with pytest.raises(InvalidAttempt) as exc_info:
            _recorder(db).record(_event(student, correct_count=6, total_count=5))
        assert exc_info.value.student_id == str(student)
        assert SqlAttemptStore(db).get_aggregate(student) is None
        assert db.query(ExerciseAttempt).filter_by(student_id=student).count() == 0

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_no_time_spent(self, db: Session, seconds: int):
        student = uuid.uuid4()
        with pytest.raises(InvalidAttempt):
            _recorder(db).record(_event(student, time_spent_seconds=seconds))
        assert SqlAttemptStore(db).get_aggregate(student) is None

    def test_out_of_order_leaves_aggregate_untouched(self, db: Session):
        student = uuid.uuid4()
        recorder = _recorder(db)
        before = recorder.record(_event(student))

        with pytest.raises(InvalidAttempt, match="earlier than the last recorded event"):
            recorder.record(_event(student, START - timedelta(minutes=1)))

        assert SqlAttemptStore(db).get_aggregate(student).model_dump() == before.model_dump()
        assert db.query(ExerciseAttempt).filter_by(student_id=student).count() == 1

    def test_redelivered_event_is_not_counted_twice(self, db: Session):
        student = uuid.uuid4()
        recorder = _recorder(db)
        event = _event(student)
        before = recorder.record(event)

        with pytest.raises(DuplicateAttempt):
            recorder.record(event)
        assert SqlAttemptStore(db).get_aggregate(student).model_dump() == before.model_dump()

    def test_apply_rejects_other_student(self):
        recorder = AttemptRecorder(store=None, tz=timezone.utc)
        with pytest.raises(InvalidAttempt):
            recorder.apply(StudentAggregate.empty(uuid.uuid4()), _event(uuid.uuid4()))


# ── Payload parsing ────────────────────────────────────────────────────────────


class TestParseAttempt:
    def _payload(self, **overrides) -> dict:
        payload = {
            "student_id": str(uuid.uuid4()),
            "exercise_id": str(uuid.uuid4()),
            "occurred_at": "2026-03-02T09:00:00+00:00",
            "score": 90,
            "time_spent_seconds": 60,
            "correct_count": 9,
            "total_count": 10,
        }
        payload.update(overrides)
        return payload

    def test_valid_payload(self):
        event = parse_attempt(self._payload(mistakes=1))
        assert event.occurred_at == START
        assert event.mistakes == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"score": 101},
            {"mistakes": -1},
            {"occurred_at": "2026-03-02T09:00:00"},
            {"student_id": "not-a-uuid"},
        ],
    )
    def test_schema_violations_become_invalid_attempt(self, overrides):
        with pytest.raises(InvalidAttempt, match="Malformed attempt event"):
            parse_attempt(self._payload(**overrides))
