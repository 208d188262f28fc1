"""Attempt and aggregate schemas."""

import uuid
from datetime import date, datetime

from pydantic import AwareDatetime, BaseModel, Field

from practice_progress.schemas.achievement import EarnedAchievement
from practice_progress.schemas.progress import ProgressSnapshot
from practice_progress.services.metrics import accuracy_percent


class AttemptEvent(BaseModel):
    """One completed exercise session.

    Only shape constraints live here; the cross-field and ordering rules
    (correct ≤ total, at least one second spent, no going back in time) are
    enforced by the recorder so they surface as ``InvalidAttempt``.
    """

    student_id: uuid.UUID
    exercise_id: uuid.UUID
    occurred_at: AwareDatetime
    score: int = Field(ge=0, le=100)
    time_spent_seconds: int
    correct_count: int = Field(ge=0)
    total_count: int = Field(ge=0)
    mistakes: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class StudentAggregate(BaseModel):
    """Per-student running state.

    ``day_*`` counters belong to ``last_activity_date`` and restart on the
    first event of a new day.
    """

    student_id: uuid.UUID
    total_attempts: int = 0
    total_correct: int = 0
    total_practice_seconds: int = 0
    current_streak_days: int = 0
    best_streak_days: int = 0
    last_activity_date: date | None = None
    last_activity_at: datetime | None = None
    day_attempts: int = 0
    day_correct: int = 0
    day_practice_seconds: int = 0

    model_config = {"frozen": True, "from_attributes": True}

    @property
    def accuracy(self) -> int:
        return accuracy_percent(self.total_correct, self.total_attempts)

    @classmethod
    def empty(cls, student_id: uuid.UUID) -> "StudentAggregate":
        return cls(student_id=student_id)


class AttemptOutcome(BaseModel):
    """Everything one accepted event produced downstream."""

    aggregate: StudentAggregate
    closed_snapshot: ProgressSnapshot | None = None
    earned: list[EarnedAchievement] = []
