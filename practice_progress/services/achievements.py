"""Achievement evaluation and awarding.

The engine compiles every active definition once when it is built.
Definitions whose criteria do not compile are logged, listed in
``engine.rejected`` and ignored for every student; the rest keep working.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable

from practice_progress.config import settings
from practice_progress.exceptions import InvalidCriteria
from practice_progress.schemas.achievement import AchievementDefinition, EarnedAchievement
from practice_progress.schemas.attempt import StudentAggregate
from practice_progress.services.criteria import Criteria, compile_criteria, evaluate
from practice_progress.services.interfaces import AchievementCatalog, AchievementLedger

logger = logging.getLogger(__name__)


class AchievementEngine:
    def __init__(self, definitions: Iterable[AchievementDefinition]) -> None:
        self._compiled: list[tuple[AchievementDefinition, Criteria]] = []
        self.rejected: dict[uuid.UUID, str] = {}

        for definition in definitions:
            if not definition.is_active:
                continue
            try:
                self._compiled.append((definition, compile_criteria(definition.criteria)))
            except InvalidCriteria as e:
                logger.error(
                    "Achievement %s (%s) disabled: invalid criteria %r: %s",
                    definition.id,
                    definition.name,
                    definition.criteria,
                    e,
                )
                self.rejected[definition.id] = str(e)

        logger.info(
            "Achievement engine loaded: %d active, %d rejected",
            len(self._compiled),
            len(self.rejected),
        )

    @classmethod
    def from_catalog(cls, catalog: AchievementCatalog) -> "AchievementEngine":
        return cls(catalog.active_definitions())

    @property
    def definitions(self) -> list[AchievementDefinition]:
        return [d for d, _ in self._compiled]

    def reevaluate(
        self,
        student_id: uuid.UUID,
        aggregate: StudentAggregate,
        already_earned_ids: set[uuid.UUID],
    ) -> list[AchievementDefinition]:
        """Definitions not yet earned whose criteria now hold, in catalog order."""
        if aggregate.student_id != student_id:
            raise ValueError("aggregate belongs to a different student")

        unlocked = [
            definition
            for definition, criteria in self._compiled
            if definition.id not in already_earned_ids and evaluate(criteria, aggregate)
        ]
        if unlocked:
            logger.debug(
                "Student %s meets criteria for %s", student_id, [d.name for d in unlocked]
            )
        return unlocked

    def award(
        self,
        ledger: AchievementLedger,
        student_id: uuid.UUID,
        aggregate: StudentAggregate,
        already_earned_ids: set[uuid.UUID],
        earned_at: datetime,
    ) -> list[EarnedAchievement]:
        """Re-evaluate and write each unlock to the ledger.

        ``earned_at`` is the triggering event's time for every award of the
        call. An insert that hits an existing row means another evaluation
        won the race; that award is dropped silently.
        """
        awarded: list[EarnedAchievement] = []
        for definition in self.reevaluate(student_id, aggregate, already_earned_ids):
            if not ledger.try_insert(student_id, definition.id, earned_at):
                logger.info(
                    "Achievement '%s' already held by student %s, skipped",
                    definition.name,
                    student_id,
                )
                continue
            logger.info("Awarded achievement '%s' to student %s", definition.name, student_id)
            awarded.append(
                EarnedAchievement(
                    student_id=student_id,
                    achievement_id=definition.id,
                    name=definition.name,
                    points=definition.points,
                    earned_at=earned_at,
                    is_new=True,
                )
            )
        return awarded


def recent_achievements(
    ledger: AchievementLedger,
    student_id: uuid.UUID,
    now: datetime,
    hours: int | None = None,
) -> list[EarnedAchievement]:
    """Achievements earned within the last ``hours`` (default from settings), newest first."""
    window = hours if hours is not None else settings.RECENT_ACHIEVEMENT_HOURS
    cutoff = now - timedelta(hours=window)
    recent = [
        EarnedAchievement(
            student_id=student_id,
            achievement_id=definition.id,
            name=definition.name,
            points=definition.points,
            earned_at=earned_at,
            is_new=True,
        )
        for definition, earned_at in ledger.earned_since(student_id, cutoff)
    ]
    recent.sort(key=lambda a: a.earned_at, reverse=True)
    return recent
