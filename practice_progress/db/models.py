"""SQLAlchemy ORM models for the practice-progress core.

Tables
------
- student_aggregates    – per-student running counters + streak state
- exercise_attempts     – append-only log of accepted attempt events
- progress_snapshots    – one immutable end-of-day rollup per student per date
- achievements          – declarative achievement definitions (managed externally)
- student_achievements  – earned achievements, at most one per student per achievement
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice_progress.db.session import Base


# ── helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


# ── Student aggregates ────────────────────────────────────────────────────────


class StudentAggregateRow(Base):
    """Running counters for one student. Written only by the attempt recorder."""

    __tablename__ = "student_aggregates"

    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    total_correct: Mapped[int] = mapped_column(Integer, default=0)
    total_practice_seconds: Mapped[int] = mapped_column(Integer, default=0)
    current_streak_days: Mapped[int] = mapped_column(Integer, default=0)
    best_streak_days: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # counters of last_activity_date only
    day_attempts: Mapped[int] = mapped_column(Integer, default=0)
    day_correct: Mapped[int] = mapped_column(Integer, default=0)
    day_practice_seconds: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


# ── Attempt log ───────────────────────────────────────────────────────────────


class ExerciseAttempt(Base):
    __tablename__ = "exercise_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    exercise_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    score: Mapped[int] = mapped_column(Integer)
    time_spent_seconds: Mapped[int] = mapped_column(Integer)
    correct_count: Mapped[int] = mapped_column(Integer)
    total_count: Mapped[int] = mapped_column(Integer)
    mistakes: Mapped[int] = mapped_column(Integer, default=0)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    # redelivered events hit this key instead of being counted twice
    __table_args__ = (
        UniqueConstraint(
            "student_id", "exercise_id", "occurred_at", name="uq_attempt_student_exercise_time"
        ),
    )


# ── Progress snapshots ────────────────────────────────────────────────────────


class ProgressSnapshotRow(Base):
    __tablename__ = "progress_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    snapshot_date: Mapped[date] = mapped_column(Date)
    # cumulative, as of the end of snapshot_date
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    total_correct: Mapped[int] = mapped_column(Integer, default=0)
    total_practice_seconds: Mapped[int] = mapped_column(Integer, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    # activity of snapshot_date alone
    daily_attempts: Mapped[int] = mapped_column(Integer, default=0)
    daily_correct: Mapped[int] = mapped_column(Integer, default=0)
    daily_practice_seconds: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("student_id", "snapshot_date", name="uq_snapshot_student_date"),
    )


# ── Achievements ──────────────────────────────────────────────────────────────


class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    # expression text ("totalAttempts >= 10 AND accuracy >= 80") or legacy JSON thresholds
    criteria: Mapped[str] = mapped_column(Text)
    points: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    student_achievements: Mapped[list["StudentAchievement"]] = relationship(
        back_populates="achievement", cascade="all, delete-orphan"
    )


class StudentAchievement(Base):
    """Earned achievement. The composite primary key is the at-most-once guard."""

    __tablename__ = "student_achievements"

    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    achievement_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("achievements.id"), primary_key=True
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    achievement: Mapped["Achievement"] = relationship(back_populates="student_achievements")
