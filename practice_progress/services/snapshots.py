"""Daily progress snapshots.

A snapshot is a point-in-time ledger entry, not a live view: once a
(student, date) row exists it is returned as-is forever, even if the
aggregate it came from is later corrected.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Callable

from practice_progress.schemas.attempt import StudentAggregate
from practice_progress.schemas.progress import ProgressSnapshot
from practice_progress.services.interfaces import SnapshotStore
from practice_progress.services.streaks import streak_as_of

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotBuilder:
    def __init__(
        self,
        store: SnapshotStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    def build_or_get(
        self, student_id: uuid.UUID, day: date, aggregate: StudentAggregate
    ) -> ProgressSnapshot:
        """Return the snapshot for ``(student_id, day)``, creating it from ``aggregate`` if absent.

        An existing snapshot is returned unchanged whatever ``aggregate`` holds.
        To build a new one, ``aggregate`` must be the student's state at the end
        of ``day``: it may not contain activity from a later day.
        """
        if aggregate.student_id != student_id:
            raise ValueError("aggregate belongs to a different student")

        existing = self._store.get(student_id, day)
        if existing is not None:
            logger.debug("Snapshot for student %s on %s already finalized", student_id, day)
            return existing

        if aggregate.last_activity_date is not None and aggregate.last_activity_date > day:
            raise ValueError(
                f"aggregate already contains activity from {aggregate.last_activity_date}, "
                f"after {day}"
            )

        snapshot = self._from_aggregate(aggregate, day)
        stored = self._store.insert_or_get(snapshot)
        logger.info(
            "Snapshot finalized student=%s date=%s attempts=%d streak=%d",
            student_id,
            day,
            stored.total_attempts,
            stored.current_streak,
        )
        return stored

    def observe(
        self, previous: StudentAggregate, current: StudentAggregate
    ) -> ProgressSnapshot | None:
        """Close the previous activity day once an event lands on a later one.

        No event for an earlier day can be accepted afterwards, so
        ``previous`` is exactly that day's end state.
        """
        last_day = previous.last_activity_date
        if last_day is None or current.last_activity_date == last_day:
            return None
        return self.build_or_get(previous.student_id, last_day, previous)

    def _from_aggregate(self, aggregate: StudentAggregate, day: date) -> ProgressSnapshot:
        active_that_day = aggregate.last_activity_date == day
        return ProgressSnapshot(
            student_id=aggregate.student_id,
            snapshot_date=day,
            total_attempts=aggregate.total_attempts,
            total_correct=aggregate.total_correct,
            total_practice_seconds=aggregate.total_practice_seconds,
            current_streak=streak_as_of(
                aggregate.last_activity_date, aggregate.current_streak_days, day
            ),
            daily_attempts=aggregate.day_attempts if active_that_day else 0,
            daily_correct=aggregate.day_correct if active_that_day else 0,
            daily_practice_seconds=aggregate.day_practice_seconds if active_that_day else 0,
            created_at=self._clock(),
        )
