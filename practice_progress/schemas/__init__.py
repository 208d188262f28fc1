"""Pydantic schemas, re-exported for convenience."""

from practice_progress.schemas.achievement import (  # noqa: F401
    AchievementDefinition,
    EarnedAchievement,
)
from practice_progress.schemas.progress import (  # noqa: F401
    ProgressSnapshot,
    StatsRead,
    WeeklyReportData,
)
from practice_progress.schemas.attempt import (  # noqa: F401
    AttemptEvent,
    AttemptOutcome,
    StudentAggregate,
)
