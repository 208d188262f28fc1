"""Celery application: worker for attempt ingestion and scheduled progress jobs."""

import logging

from celery import Celery

from practice_progress.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)

celery_app = Celery(
    "practice_progress",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.ACTIVITY_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Run tasks synchronously in-process when True (dev default, no Redis needed).
    # Set CELERY_TASK_ALWAYS_EAGER=false in .env when running a real worker.
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
)

celery_app.autodiscover_tasks(["practice_progress"])
