"""Attempt ingestion.

Turns exercise-attempt events into running per-student totals and the
daily practice streak. The recorder only owns the aggregate; closing the
day's snapshot and re-checking achievements happen downstream, driven by
``practice_progress.services.pipeline``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import tzinfo
from typing import Any, Mapping

from pydantic import ValidationError

from practice_progress.config import settings
from practice_progress.exceptions import InvalidAttempt
from practice_progress.schemas.attempt import AttemptEvent, StudentAggregate
from practice_progress.services import streaks
from practice_progress.services.interfaces import AttemptStore

logger = logging.getLogger(__name__)


def parse_attempt(payload: Mapping[str, Any]) -> AttemptEvent:
    """Validate a raw event payload, reporting any schema problem as ``InvalidAttempt``."""
    try:
        return AttemptEvent.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        student_id = payload.get("student_id")
        logger.warning("Rejected malformed attempt for student %s: %s", student_id, fields)
        raise InvalidAttempt(
            f"Malformed attempt event ({fields})",
            student_id=str(student_id) if student_id is not None else None,
        ) from e


class AttemptRecorder:
    """Validates attempts and folds them into the student's aggregate."""

    def __init__(self, store: AttemptStore, tz: tzinfo | None = None) -> None:
        self._store = store
        self._tz = tz or settings.activity_tz

    def record(self, event: AttemptEvent) -> StudentAggregate:
        """Apply ``event`` and persist the result.

        Raises ``InvalidAttempt`` before anything is written if the event is
        inconsistent or older than the student's last recorded event.
        """
        aggregate = self.apply(self.load(event.student_id), event)
        self.save(event, aggregate)
        return aggregate

    def load(self, student_id: uuid.UUID) -> StudentAggregate:
        return self._store.get_aggregate(student_id) or StudentAggregate.empty(student_id)

    def save(self, event: AttemptEvent, aggregate: StudentAggregate) -> None:
        """Persist an aggregate produced by ``apply`` together with its event."""
        self._store.save(event, aggregate)
        logger.info(
            "Recorded attempt student=%s exercise=%s day=%s streak=%d total=%d/%d",
            event.student_id,
            event.exercise_id,
            aggregate.last_activity_date,
            aggregate.current_streak_days,
            aggregate.total_correct,
            aggregate.total_attempts,
        )

    def apply(self, previous: StudentAggregate, event: AttemptEvent) -> StudentAggregate:
        """Pure fold of one event into an aggregate (no storage access)."""
        self._validate(previous, event)

        day = streaks.activity_date(event.occurred_at, self._tz)
        streak, best = streaks.update(
            previous.last_activity_date,
            previous.current_streak_days,
            previous.best_streak_days,
            day,
        )

        if previous.last_activity_date == day:
            day_attempts = previous.day_attempts + event.total_count
            day_correct = previous.day_correct + event.correct_count
            day_seconds = previous.day_practice_seconds + event.time_spent_seconds
        else:
            day_attempts = event.total_count
            day_correct = event.correct_count
            day_seconds = event.time_spent_seconds

        return previous.model_copy(
            update={
                "total_attempts": previous.total_attempts + event.total_count,
                "total_correct": previous.total_correct + event.correct_count,
                "total_practice_seconds": previous.total_practice_seconds
                + event.time_spent_seconds,
                "current_streak_days": streak,
                "best_streak_days": best,
                "last_activity_date": day,
                "last_activity_at": event.occurred_at,
                "day_attempts": day_attempts,
                "day_correct": day_correct,
                "day_practice_seconds": day_seconds,
            }
        )

    # ── validation ───────────────────────────────────────────────────────

    def _validate(self, previous: StudentAggregate, event: AttemptEvent) -> None:
        if event.student_id != previous.student_id:
            self._reject(event, "event belongs to a different student")
        if event.total_count < event.correct_count:
            self._reject(
                event,
                f"correct_count {event.correct_count} exceeds total_count {event.total_count}",
            )
        if event.time_spent_seconds < 1:
            self._reject(event, f"time_spent_seconds must be >= 1, got {event.time_spent_seconds}")
        if previous.last_activity_at is not None and event.occurred_at < previous.last_activity_at:
            self._reject(
                event,
                f"occurred_at {event.occurred_at.isoformat()} is earlier than the last "
                f"recorded event {previous.last_activity_at.isoformat()}",
            )

    @staticmethod
    def _reject(event: AttemptEvent, reason: str) -> None:
        logger.warning("Rejected attempt for student %s: %s", event.student_id, reason)
        raise InvalidAttempt(reason, student_id=str(event.student_id))
