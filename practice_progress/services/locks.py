"""Per-student serialisation of progress updates.

Every attempt, snapshot and achievement write for one student runs while
holding that student's lock. Different students never block each other.

Two backends, picked by ``STUDENT_LOCK_BACKEND``:

- ``local``  in-process ``threading.Lock`` per student (single worker / tests)
- ``redis``  ``redis-py`` distributed lock, shared by every worker
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Iterator

import redis

from practice_progress.config import settings
from practice_progress.exceptions import ConcurrentWriteConflict

logger = logging.getLogger(__name__)

_pool: redis.ConnectionPool | None = None


def _get_redis() -> redis.Redis:
    """Return a Redis client backed by a shared connection pool."""
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(settings.redis_url, max_connections=10)
    return redis.Redis(connection_pool=_pool)


class LocalStudentLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[uuid.UUID, threading.Lock] = {}

    def _lock_for(self, student_id: uuid.UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(student_id)
            if lock is None:
                lock = self._locks[student_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, student_id: uuid.UUID) -> Iterator[None]:
        lock = self._lock_for(student_id)
        if not lock.acquire(timeout=settings.STUDENT_LOCK_TIMEOUT_SECONDS):
            raise ConcurrentWriteConflict(f"timed out waiting for student {student_id}")
        try:
            yield
        finally:
            lock.release()


class RedisStudentLocks:
    def __init__(self, client: redis.Redis | None = None) -> None:
        self._client = client

    @contextmanager
    def hold(self, student_id: uuid.UUID) -> Iterator[None]:
        client = self._client or _get_redis()
        timeout = settings.STUDENT_LOCK_TIMEOUT_SECONDS
        lock = client.lock(
            f"progress:lock:student:{student_id}",
            timeout=timeout,
            blocking_timeout=timeout,
        )
        if not lock.acquire():
            raise ConcurrentWriteConflict(f"timed out waiting for student {student_id}")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError as e:
                # Lock expired while held; the next holder already owns it.
                logger.warning("Student lock %s lost before release: %s", student_id, e)


def build_student_locks() -> LocalStudentLocks | RedisStudentLocks:
    backend = settings.STUDENT_LOCK_BACKEND.lower()
    if backend == "redis":
        return RedisStudentLocks()
    if backend == "local":
        return LocalStudentLocks()
    raise ValueError(f"unknown STUDENT_LOCK_BACKEND '{settings.STUDENT_LOCK_BACKEND}'")
