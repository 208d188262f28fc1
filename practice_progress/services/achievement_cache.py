"""Redis-backed cache for the active achievement catalog.

Definitions change rarely and are read on every attempt, so the list is
kept in Redis under one key with a TTL. Cache failures are logged and
fall through to the database.
"""

import json
import logging
import uuid

import redis

from practice_progress.config import settings
from practice_progress.schemas.achievement import AchievementDefinition
from practice_progress.services.interfaces import AchievementCatalog

logger = logging.getLogger(__name__)

CACHE_KEY = "progress_cache:achievements:active"

_pool: redis.ConnectionPool | None = None


def _get_redis() -> redis.Redis:
    """Return a Redis client backed by a shared connection pool."""
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=10,
        )
    return redis.Redis(connection_pool=_pool)


def cache_get() -> list[AchievementDefinition] | None:
    """Cached active definitions (or None on miss/disabled)."""
    if not settings.ACHIEVEMENT_CACHE_ENABLED:
        return None
    try:
        raw = _get_redis().get(CACHE_KEY)
        if raw:
            logger.debug("Achievement cache HIT")
            return [AchievementDefinition.model_validate(d) for d in json.loads(raw)]
        logger.debug("Achievement cache MISS")
        return None
    except Exception as e:
        logger.warning("Achievement cache read failed (non-fatal): %s", e)
        return None


def cache_set(definitions: list[AchievementDefinition], ttl: int | None = None) -> None:
    if not settings.ACHIEVEMENT_CACHE_ENABLED:
        return
    ttl = ttl or settings.ACHIEVEMENT_CACHE_TTL_SECONDS
    try:
        payload = json.dumps([d.model_dump(mode="json") for d in definitions])
        _get_redis().setex(CACHE_KEY, ttl, payload)
        logger.debug("Achievement cache SET: %d definitions (ttl=%ds)", len(definitions), ttl)
    except Exception as e:
        logger.warning("Achievement cache write failed (non-fatal): %s", e)


def cache_invalidate() -> None:
    """Drop the cached catalog; call after definitions are edited."""
    try:
        _get_redis().delete(CACHE_KEY)
    except Exception as e:
        logger.warning("Achievement cache invalidate failed (non-fatal): %s", e)


class CachedAchievementCatalog:
    """Serves ``active_definitions`` from Redis, loading from ``inner`` on a miss.

    Earned ids are per student and always read through.
    """

    def __init__(self, inner: AchievementCatalog) -> None:
        self._inner = inner

    def active_definitions(self) -> list[AchievementDefinition]:
        cached = cache_get()
        if cached is not None:
            return cached
        definitions = self._inner.active_definitions()
        cache_set(definitions)
        return definitions

    def earned_ids(self, student_id: uuid.UUID) -> set[uuid.UUID]:
        return self._inner.earned_ids(student_id)
