"""Scheduled progress jobs: end-of-day snapshots and weekly reports.

Both walk every known student. A failure for one student is logged and
counted; the run carries on with the next one.
"""

import logging
import uuid
from datetime import date, timedelta
from typing import Callable, Mapping

from sqlalchemy.orm import Session

from practice_progress.db.session import session_scope
from practice_progress.db.stores import SqlAttemptStore, SqlSnapshotStore
from practice_progress.schemas.progress import WeeklyReportData
from practice_progress.services.locks import build_student_locks
from practice_progress.services.snapshots import SnapshotBuilder
from practice_progress.services.weekly_report import WEEK_DAYS, compose

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def _student_ids(session_factory: SessionFactory) -> list[uuid.UUID]:
    with session_scope(session_factory) as db:
        return [a.student_id for a in SqlAttemptStore(db, lock_rows=False).list_aggregates()]


def _close_student_day(db: Session, student_id: uuid.UUID, day: date) -> bool:
    aggregate = SqlAttemptStore(db).get_aggregate(student_id)
    if aggregate is None or aggregate.last_activity_date is None:
        return False
    if aggregate.last_activity_date > day:
        # already moved on; that day was closed when the later event arrived
        return False

    builder = SnapshotBuilder(SqlSnapshotStore(db))
    if aggregate.last_activity_date < day:
        # Nothing after the last active day was recorded, so it can be closed too.
        builder.build_or_get(student_id, aggregate.last_activity_date, aggregate)
    builder.build_or_get(student_id, day, aggregate)
    return True


def close_daily_snapshots(session_factory: SessionFactory, day: date, locks=None) -> dict:
    """Snapshot ``day`` for every student whose aggregate has nothing later."""
    locks = locks or build_student_locks()
    closed = skipped = failed = 0

    for student_id in _student_ids(session_factory):
        try:
            with locks.hold(student_id), session_scope(session_factory) as db:
                if _close_student_day(db, student_id, day):
                    closed += 1
                else:
                    skipped += 1
        except Exception:
            failed += 1
            logger.exception("Daily snapshot failed for student %s on %s", student_id, day)

    logger.info(
        "Daily snapshots for %s: %d closed, %d skipped, %d failed", day, closed, skipped, failed
    )
    return {"date": day.isoformat(), "closed": closed, "skipped": skipped, "failed": failed}


def compose_weekly_reports(
    session_factory: SessionFactory,
    week_start: date,
    homework_counts: Mapping[uuid.UUID, tuple[int, int]] | None = None,
    locks=None,
) -> list[WeeklyReportData]:
    """Close the week's last day, then compose a report for every student.

    ``homework_counts`` maps a student to ``(completed, total)`` for the
    week; students missing from it get ``(0, 0)``.
    """
    homework_counts = homework_counts or {}
    week_end = week_start + timedelta(days=WEEK_DAYS - 1)
    close_daily_snapshots(session_factory, week_end, locks)

    reports: list[WeeklyReportData] = []
    with session_scope(session_factory) as db:
        store = SqlSnapshotStore(db)
        for student_id in _student_ids(session_factory):
            completed, total = homework_counts.get(student_id, (0, 0))
            try:
                reports.append(
                    compose(
                        student_id,
                        week_start,
                        store.list_range(student_id, week_start, week_end),
                        completed,
                        total,
                    )
                )
            except ValueError as e:
                logger.error("Weekly report skipped for student %s: %s", student_id, e)

    logger.info("Composed %d weekly reports for week of %s", len(reports), week_start)
    return reports
