"""Achievement schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel


class AchievementDefinition(BaseModel):
    """An achievement as stored in the catalog; ``criteria`` is still raw text."""

    id: uuid.UUID
    name: str
    description: str | None = None
    icon_url: str | None = None
    criteria: str
    points: int = 0
    is_active: bool = True

    model_config = {"frozen": True, "from_attributes": True}


class EarnedAchievement(BaseModel):
    """An award written to the ledger."""

    student_id: uuid.UUID
    achievement_id: uuid.UUID
    name: str
    points: int = 0
    earned_at: datetime
    is_new: bool = False
