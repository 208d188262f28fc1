"""Progress / analytics schemas."""

import uuid
from datetime import date, datetime

from pydantic import BaseModel


class ProgressSnapshot(BaseModel):
    """Immutable end-of-day rollup.

    ``total_*`` and ``current_streak`` are cumulative as of the end of
    ``snapshot_date``; ``daily_*`` cover that day alone.
    """

    student_id: uuid.UUID
    snapshot_date: date
    total_attempts: int
    total_correct: int
    total_practice_seconds: int
    current_streak: int
    daily_attempts: int = 0
    daily_correct: int = 0
    daily_practice_seconds: int = 0
    created_at: datetime

    model_config = {"frozen": True, "from_attributes": True}


class WeeklyReportData(BaseModel):
    """Seven-day summary handed to the report renderer."""

    student_id: uuid.UUID
    week_start: date
    week_end: date
    problems_solved: int
    total_correct: int
    accuracy_rate: int
    practice_time_seconds: int
    current_streak: int
    days_active: int
    completed_homework_count: int
    total_homework_count: int


class StatsRead(BaseModel):
    """Dashboard stats for one period (day / week / month / all)."""

    period: str
    problems_solved: int
    total_correct: int
    accuracy_rate: int
    practice_seconds: int
    total_practice_time: str
    current_streak: int
    best_streak: int
