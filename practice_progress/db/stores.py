"""SQLAlchemy-backed stores for the progress core.

Each mutating method commits its own unit of work. Conditional inserts rely
on the tables' unique keys: the insert is attempted, and an
``IntegrityError`` means another writer got there first, so the winner's row
is read back instead.
"""

import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practice_progress.db.models import (
    Achievement,
    ExerciseAttempt,
    ProgressSnapshotRow,
    StudentAchievement,
    StudentAggregateRow,
)
from practice_progress.exceptions import ConcurrentWriteConflict, DuplicateAttempt
from practice_progress.schemas.achievement import AchievementDefinition
from practice_progress.schemas.attempt import AttemptEvent, StudentAggregate
from practice_progress.schemas.progress import ProgressSnapshot

logger = logging.getLogger(__name__)

_AGGREGATE_COUNTERS = (
    "total_attempts",
    "total_correct",
    "total_practice_seconds",
    "current_streak_days",
    "best_streak_days",
    "last_activity_date",
    "day_attempts",
    "day_correct",
    "day_practice_seconds",
)


def _as_utc(value: datetime | None) -> datetime | None:
    """Normalise to aware UTC (SQLite hands timestamps back naive)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _aggregate_from_row(row: StudentAggregateRow) -> StudentAggregate:
    return StudentAggregate(
        student_id=row.student_id,
        last_activity_at=_as_utc(row.last_activity_at),
        **{name: getattr(row, name) for name in _AGGREGATE_COUNTERS},
    )


def _snapshot_from_row(row: ProgressSnapshotRow) -> ProgressSnapshot:
    return ProgressSnapshot(
        student_id=row.student_id,
        snapshot_date=row.snapshot_date,
        total_attempts=row.total_attempts,
        total_correct=row.total_correct,
        total_practice_seconds=row.total_practice_seconds,
        current_streak=row.current_streak,
        daily_attempts=row.daily_attempts,
        daily_correct=row.daily_correct,
        daily_practice_seconds=row.daily_practice_seconds,
        created_at=_as_utc(row.created_at),
    )


# ── Attempts / aggregates ─────────────────────────────────────────────────────


class SqlAttemptStore:
    def __init__(self, db: Session, lock_rows: bool = True) -> None:
        self._db = db
        self._lock_rows = lock_rows

    def get_aggregate(self, student_id: uuid.UUID) -> StudentAggregate | None:
        query = self._db.query(StudentAggregateRow).filter(
            StudentAggregateRow.student_id == student_id
        )
        if self._lock_rows:
            # Row lock on databases that support it; the per-student lock covers the rest.
            query = query.with_for_update()
        row = query.first()
        return _aggregate_from_row(row) if row else None

    def save(self, event: AttemptEvent, aggregate: StudentAggregate) -> None:
        row = self._db.get(StudentAggregateRow, aggregate.student_id)
        if row is None:
            row = StudentAggregateRow(student_id=aggregate.student_id)
            self._db.add(row)
        for name in _AGGREGATE_COUNTERS:
            setattr(row, name, getattr(aggregate, name))
        row.last_activity_at = _as_utc(aggregate.last_activity_at)

        self._db.add(
            ExerciseAttempt(
                student_id=event.student_id,
                exercise_id=event.exercise_id,
                occurred_at=_as_utc(event.occurred_at),
                score=event.score,
                time_spent_seconds=event.time_spent_seconds,
                correct_count=event.correct_count,
                total_count=event.total_count,
                mistakes=event.mistakes,
            )
        )
        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            if self._attempt_exists(event):
                raise DuplicateAttempt(
                    f"attempt on exercise {event.exercise_id} at "
                    f"{event.occurred_at.isoformat()} was already recorded",
                    student_id=str(event.student_id),
                )
            raise
        except Exception:
            self._db.rollback()
            raise

    def _attempt_exists(self, event: AttemptEvent) -> bool:
        return (
            self._db.query(ExerciseAttempt.id)
            .filter(
                ExerciseAttempt.student_id == event.student_id,
                ExerciseAttempt.exercise_id == event.exercise_id,
                ExerciseAttempt.occurred_at == _as_utc(event.occurred_at),
            )
            .first()
            is not None
        )

    def list_aggregates(self) -> list[StudentAggregate]:
        rows = self._db.query(StudentAggregateRow).order_by(StudentAggregateRow.student_id).all()
        return [_aggregate_from_row(r) for r in rows]


# ── Snapshots ─────────────────────────────────────────────────────────────────


class SqlSnapshotStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def _row(self, student_id: uuid.UUID, snapshot_date: date) -> ProgressSnapshotRow | None:
        return (
            self._db.query(ProgressSnapshotRow)
            .filter(
                ProgressSnapshotRow.student_id == student_id,
                ProgressSnapshotRow.snapshot_date == snapshot_date,
            )
            .first()
        )

    def get(self, student_id: uuid.UUID, snapshot_date: date) -> ProgressSnapshot | None:
        row = self._row(student_id, snapshot_date)
        return _snapshot_from_row(row) if row else None

    def insert_or_get(self, snapshot: ProgressSnapshot) -> ProgressSnapshot:
        row = ProgressSnapshotRow(
            student_id=snapshot.student_id,
            snapshot_date=snapshot.snapshot_date,
            total_attempts=snapshot.total_attempts,
            total_correct=snapshot.total_correct,
            total_practice_seconds=snapshot.total_practice_seconds,
            current_streak=snapshot.current_streak,
            daily_attempts=snapshot.daily_attempts,
            daily_correct=snapshot.daily_correct,
            daily_practice_seconds=snapshot.daily_practice_seconds,
            created_at=_as_utc(snapshot.created_at),
        )
        self._db.add(row)
        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            winner = self._row(snapshot.student_id, snapshot.snapshot_date)
            if winner is None:
                raise ConcurrentWriteConflict(
                    f"snapshot insert for student {snapshot.student_id} on "
                    f"{snapshot.snapshot_date} conflicted but no row was found"
                )
            logger.info(
                "Snapshot for student %s on %s was created concurrently; using stored row",
                snapshot.student_id,
                snapshot.snapshot_date,
            )
            return _snapshot_from_row(winner)
        return _snapshot_from_row(row)

    def list_range(
        self, student_id: uuid.UUID, start: date, end: date
    ) -> list[ProgressSnapshot]:
        rows = (
            self._db.query(ProgressSnapshotRow)
            .filter(
                ProgressSnapshotRow.student_id == student_id,
                ProgressSnapshotRow.snapshot_date >= start,
                ProgressSnapshotRow.snapshot_date <= end,
            )
            .order_by(ProgressSnapshotRow.snapshot_date)
            .all()
        )
        return [_snapshot_from_row(r) for r in rows]

    def latest_on_or_before(
        self, student_id: uuid.UUID, day: date
    ) -> ProgressSnapshot | None:
        row = (
            self._db.query(ProgressSnapshotRow)
            .filter(
                ProgressSnapshotRow.student_id == student_id,
                ProgressSnapshotRow.snapshot_date <= day,
            )
            .order_by(ProgressSnapshotRow.snapshot_date.desc())
            .first()
        )
        return _snapshot_from_row(row) if row else None


# ── Achievements ──────────────────────────────────────────────────────────────


class SqlAchievementCatalog:
    def __init__(self, db: Session) -> None:
        self._db = db

    def active_definitions(self) -> list[AchievementDefinition]:
        rows = (
            self._db.query(Achievement)
            .filter(Achievement.is_active.is_(True))
            .order_by(Achievement.points, Achievement.name)
            .all()
        )
        return [AchievementDefinition.model_validate(r) for r in rows]

    def earned_ids(self, student_id: uuid.UUID) -> set[uuid.UUID]:
        rows = (
            self._db.query(StudentAchievement.achievement_id)
            .filter(StudentAchievement.student_id == student_id)
            .all()
        )
        return {r.achievement_id for r in rows}


class SqlAchievementLedger:
    def __init__(self, db: Session) -> None:
        self._db = db

    def try_insert(
        self, student_id: uuid.UUID, achievement_id: uuid.UUID, earned_at: datetime
    ) -> bool:
        if self._db.get(StudentAchievement, (student_id, achievement_id)) is not None:
            return False
        self._db.add(
            StudentAchievement(
                student_id=student_id,
                achievement_id=achievement_id,
                earned_at=_as_utc(earned_at),
            )
        )
        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            # Only a duplicate key is a lost race; anything else is a real failure.
            if self._db.get(StudentAchievement, (student_id, achievement_id)) is None:
                raise
            return False
        return True

    def earned_since(
        self, student_id: uuid.UUID, cutoff: datetime
    ) -> list[tuple[AchievementDefinition, datetime]]:
        rows = (
            self._db.query(StudentAchievement)
            .join(Achievement)
            .filter(
                StudentAchievement.student_id == student_id,
                StudentAchievement.earned_at >= _as_utc(cutoff),
            )
            .order_by(StudentAchievement.earned_at.desc())
            .all()
        )
        return [
            (AchievementDefinition.model_validate(r.achievement), _as_utc(r.earned_at))
            for r in rows
        ]
