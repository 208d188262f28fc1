"""Collaborator interfaces the core depends on.

The SQLAlchemy implementations live in ``practice_progress.db.stores``;
anything satisfying these protocols (an in-memory fake, another database)
can be handed to the services instead.
"""

import uuid
from datetime import date, datetime
from typing import Iterable, Protocol

from practice_progress.schemas.achievement import AchievementDefinition
from practice_progress.schemas.attempt import AttemptEvent, StudentAggregate
from practice_progress.schemas.progress import ProgressSnapshot


class AttemptStore(Protocol):
    def get_aggregate(self, student_id: uuid.UUID) -> StudentAggregate | None:
        """Current aggregate, or None if the student never practised."""

    def save(self, event: AttemptEvent, aggregate: StudentAggregate) -> None:
        """Append the event to the log and store the new aggregate atomically."""

    def list_aggregates(self) -> Iterable[StudentAggregate]:
        """Every known student's aggregate (for scheduled jobs)."""


class SnapshotStore(Protocol):
    def insert_or_get(self, snapshot: ProgressSnapshot) -> ProgressSnapshot:
        """Insert unless (student_id, snapshot_date) exists; return the stored row."""

    def get(self, student_id: uuid.UUID, snapshot_date: date) -> ProgressSnapshot | None:
        ...

    def list_range(
        self, student_id: uuid.UUID, start: date, end: date
    ) -> list[ProgressSnapshot]:
        """Snapshots with start <= snapshot_date <= end, oldest first."""

    def latest_on_or_before(
        self, student_id: uuid.UUID, day: date
    ) -> ProgressSnapshot | None:
        ...


class AchievementCatalog(Protocol):
    def active_definitions(self) -> list[AchievementDefinition]:
        ...

    def earned_ids(self, student_id: uuid.UUID) -> set[uuid.UUID]:
        ...


class AchievementLedger(Protocol):
    def try_insert(
        self, student_id: uuid.UUID, achievement_id: uuid.UUID, earned_at: datetime
    ) -> bool:
        """Record the award; False when it already existed (lost race included)."""

    def earned_since(
        self, student_id: uuid.UUID, cutoff: datetime
    ) -> list[tuple[AchievementDefinition, datetime]]:
        ...
