"""One attempt, end to end.

``ProgressPipeline.handle`` is the single entry point for accepted events:

1. load the student's aggregate and fold the event in (``InvalidAttempt``
   stops here, nothing written)
2. close the previous activity day's snapshot if the event starts a new day
3. persist the event and the new aggregate
4. re-evaluate achievements and award the new ones at the event's time

All of it runs inside the student's lock, in a session of its own.
"""

import logging
import time
import uuid
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Callable, Mapping

from sqlalchemy.orm import Session

from practice_progress.config import settings
from practice_progress.db.session import session_scope
from practice_progress.db.stores import (
    SqlAchievementCatalog,
    SqlAchievementLedger,
    SqlAttemptStore,
    SqlSnapshotStore,
)
from practice_progress.exceptions import DuplicateAttempt
from practice_progress.schemas.achievement import EarnedAchievement
from practice_progress.schemas.attempt import AttemptEvent, AttemptOutcome
from practice_progress.schemas.progress import StatsRead
from practice_progress.services.achievement_cache import CachedAchievementCatalog
from practice_progress.services.achievements import AchievementEngine, recent_achievements
from practice_progress.services.locks import build_student_locks
from practice_progress.services.recorder import AttemptRecorder, parse_attempt
from practice_progress.services.snapshots import SnapshotBuilder
from practice_progress.services.stats import student_stats

logger = logging.getLogger(__name__)


class ProgressPipeline:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        locks=None,
        tz: tzinfo | None = None,
        engine: AchievementEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks or build_student_locks()
        self._tz = tz or settings.activity_tz
        self._engine = engine
        # an injected engine is kept as-is; a loaded one expires with the catalog cache
        self._refresh = engine is None
        self._clock = clock
        self._loaded_at = 0.0

    # ── achievements ─────────────────────────────────────────────────────

    @property
    def achievements(self) -> AchievementEngine:
        if self._engine is None or self._stale():
            self.reload_achievements()
        return self._engine

    def _stale(self) -> bool:
        if not self._refresh:
            return False
        return self._clock() - self._loaded_at >= settings.ACHIEVEMENT_CACHE_TTL_SECONDS

    def reload_achievements(self) -> AchievementEngine:
        """Rebuild the engine from the (possibly cached) active catalog."""
        with session_scope(self._session_factory) as db:
            catalog = SqlAchievementCatalog(db)
            if settings.ACHIEVEMENT_CACHE_ENABLED:
                catalog = CachedAchievementCatalog(catalog)
            self._engine = AchievementEngine.from_catalog(catalog)
        self._loaded_at = self._clock()
        return self._engine

    # ── ingestion ────────────────────────────────────────────────────────

    def handle_payload(self, payload: Mapping[str, Any]) -> AttemptOutcome:
        return self.handle(parse_attempt(payload))

    def handle(self, event: AttemptEvent) -> AttemptOutcome:
        engine = self.achievements
        with self._locks.hold(event.student_id), session_scope(self._session_factory) as db:
            return self._handle(db, engine, event)

    def _handle(self, db: Session, engine: AchievementEngine, event: AttemptEvent) -> AttemptOutcome:
        recorder = AttemptRecorder(SqlAttemptStore(db), self._tz)
        previous = recorder.load(event.student_id)
        aggregate = recorder.apply(previous, event)

        # The previous day is final once an event for a later day is accepted.
        closed = SnapshotBuilder(SqlSnapshotStore(db)).observe(previous, aggregate)

        try:
            recorder.save(event, aggregate)
        except DuplicateAttempt:
            logger.info(
                "Attempt for student %s at %s already recorded; re-checking achievements only",
                event.student_id,
                event.occurred_at.isoformat(),
            )
            aggregate = previous

        earned = engine.award(
            SqlAchievementLedger(db),
            event.student_id,
            aggregate,
            SqlAchievementCatalog(db).earned_ids(event.student_id),
            earned_at=event.occurred_at,
        )
        return AttemptOutcome(aggregate=aggregate, closed_snapshot=closed, earned=earned)

    # ── read side ────────────────────────────────────────────────────────

    def stats(self, student_id: uuid.UUID, period: str, today: date | None = None) -> StatsRead:
        today = today or datetime.now(self._tz).date()
        with session_scope(self._session_factory) as db:
            return student_stats(
                SqlAttemptStore(db, lock_rows=False),
                SqlSnapshotStore(db),
                student_id,
                period,
                today,
            )

    def recent_achievements(
        self, student_id: uuid.UUID, now: datetime | None = None, hours: int | None = None
    ) -> list[EarnedAchievement]:
        now = now or datetime.now(timezone.utc)
        with session_scope(self._session_factory) as db:
            return recent_achievements(SqlAchievementLedger(db), student_id, now, hours)
