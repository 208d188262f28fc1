"""Background tasks executed by Celery workers."""

import logging
import uuid
from datetime import date, datetime, timedelta

from practice_progress.celery_app import celery_app
from practice_progress.config import settings
from practice_progress.db.session import get_session_factory
from practice_progress.exceptions import InvalidAttempt
from practice_progress.services import jobs
from practice_progress.services.pipeline import ProgressPipeline
from practice_progress.services.weekly_report import week_start_for

logger = logging.getLogger(__name__)

_pipeline: ProgressPipeline | None = None


def get_pipeline() -> ProgressPipeline:
    """Worker-wide pipeline; the compiled achievement engine is reused until the catalog TTL expires."""
    global _pipeline
    if _pipeline is None:
        _pipeline = ProgressPipeline(get_session_factory())
    return _pipeline


def _today() -> date:
    return datetime.now(settings.activity_tz).date()


@celery_app.task(bind=True, name="record_attempt", max_retries=3)
def record_attempt(self, payload: dict) -> dict:
    """Run one raw attempt event through the progress pipeline.

    Invalid events are reported in the result and never retried. Anything
    else (database or Redis unavailable) is retried with exponential
    back-off (10s, 30s, 90s); a redelivered event that was already stored
    is recognised and only re-checks achievements.
    """
    try:
        outcome = get_pipeline().handle_payload(payload)
    except InvalidAttempt as e:
        return {"success": False, "error": "invalid_attempt", "detail": str(e)}
    except Exception as exc:
        logger.exception("Recording attempt failed for student %s", payload.get("student_id"))
        raise self.retry(exc=exc, countdown=10 * (3**self.request.retries))

    return {"success": True, **outcome.model_dump(mode="json")}


@celery_app.task(bind=True, name="close_daily_snapshots", max_retries=3)
def close_daily_snapshots(self, day: str | None = None) -> dict:
    """Snapshot every student for ``day`` (ISO date, default yesterday)."""
    target = date.fromisoformat(day) if day else _today() - timedelta(days=1)
    try:
        return jobs.close_daily_snapshots(get_session_factory(), target)
    except Exception as exc:
        logger.exception("Daily snapshot run for %s failed", target)
        raise self.retry(exc=exc, countdown=10 * (3**self.request.retries))


@celery_app.task(bind=True, name="compose_weekly_reports", max_retries=3)
def compose_weekly_reports(
    self,
    week_start: str | None = None,
    homework_counts: dict[str, list[int]] | None = None,
) -> list[dict]:
    """Weekly reports for every student.

    ``week_start`` defaults to the Monday of last week; ``homework_counts``
    maps student id strings to ``[completed, total]``.
    """
    start = (
        date.fromisoformat(week_start)
        if week_start
        else week_start_for(_today()) - timedelta(days=7)
    )
    counts = {
        uuid.UUID(student_id): (int(pair[0]), int(pair[1]))
        for student_id, pair in (homework_counts or {}).items()
    }
    try:
        reports = jobs.compose_weekly_reports(get_session_factory(), start, counts)
    except Exception as exc:
        logger.exception("Weekly report run for week of %s failed", start)
        raise self.retry(exc=exc, countdown=10 * (3**self.request.retries))
    return [r.model_dump(mode="json") for r in reports]
