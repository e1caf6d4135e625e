import time
from abc import ABC, abstractmethod

import redis.asyncio as redis
from cachetools import TLRUCache
from loguru import logger
from pydantic import ValidationError

from cultura.core.config import settings
from cultura.core.constants import RECOMMENDATIONS_KEY
from cultura.core.security import redact_user_id
from cultura.models.recommendation import CacheEntry, RankedRecommendation
from cultura.services.recommendation.errors import CacheWriteFailure
from cultura.services.redis_service import RedisService, redis_service


class RecommendationCache(ABC):
    """
    Per-user store of the most recent ranked list. One entry per user, last write wins.
    """

    def __init__(self, default_ttl: int | None = None):
        self.default_ttl = default_ttl or settings.RECOMMENDATION_CACHE_TTL_SECONDS

    @abstractmethod
    async def get(self, user_id: str) -> CacheEntry | None:
        pass

    @abstractmethod
    async def put(self, user_id: str, recommendations: list[RankedRecommendation], ttl: int | None = None) -> CacheEntry:
        """Store a list for the user. Raises CacheWriteFailure when the write does not land."""
        pass

    @abstractmethod
    async def invalidate(self, user_id: str) -> None:
        pass

    async def close(self) -> None:
        return None


class RedisRecommendationCache(RecommendationCache):
    def __init__(self, service: RedisService | None = None, default_ttl: int | None = None):
        super().__init__(default_ttl)
        self.service = service or redis_service

    @staticmethod
    def _key(user_id: str) -> str:
        return RECOMMENDATIONS_KEY.format(user_id=user_id)

    async def get(self, user_id: str) -> CacheEntry | None:
        try:
            client = await self.service.get_client()
            cached = await client.get(self._key(user_id))
        except (redis.RedisError, OSError) as exc:
            logger.error(f"[{redact_user_id(user_id)}] Failed to read cached recommendations: {exc}")
            return None
        if not cached:
            return None
        try:
            entry = CacheEntry.model_validate_json(cached)
        except ValidationError as e:
            logger.warning(f"[{redact_user_id(user_id)}] Failed to decode cached recommendations: {e}")
            return None
        if entry.is_expired():
            return None
        return entry

    async def put(self, user_id: str, recommendations: list[RankedRecommendation], ttl: int | None = None) -> CacheEntry:
        ttl = ttl or self.default_ttl
        entry = CacheEntry.build(user_id, recommendations, ttl)
        try:
            client = await self.service.get_client()
            stored = await client.setex(self._key(user_id), ttl, entry.model_dump_json())
        except (redis.RedisError, OSError) as exc:
            raise CacheWriteFailure(f"Redis write failed for {redact_user_id(user_id)}: {exc}") from exc
        if not stored:
            raise CacheWriteFailure(f"Redis rejected recommendations for {redact_user_id(user_id)}")
        logger.debug(f"[{redact_user_id(user_id)}] Cached {len(recommendations)} recommendations for {ttl}s")
        return entry

    async def invalidate(self, user_id: str) -> None:
        client = await self.service.get_client()
        await client.delete(self._key(user_id))
        logger.debug(f"[{redact_user_id(user_id)}] Invalidated recommendations cache")

    async def close(self) -> None:
        await self.service.close()


class MemoryRecommendationCache(RecommendationCache):
    """
    In-process cache for single-instance deployments and tests.
    Each entry expires at its own `expires_at`.
    """

    def __init__(self, default_ttl: int | None = None, maxsize: int | None = None):
        super().__init__(default_ttl)
        self._entries: TLRUCache = TLRUCache(
            maxsize=maxsize or settings.MEMORY_CACHE_MAX_USERS,
            ttu=lambda _key, entry, _now: entry.expires_at.timestamp(),
            timer=time.time,
        )

    async def get(self, user_id: str) -> CacheEntry | None:
        entry = self._entries.get(user_id)
        if entry is None or entry.is_expired():
            return None
        return entry

    async def put(self, user_id: str, recommendations: list[RankedRecommendation], ttl: int | None = None) -> CacheEntry:
        entry = CacheEntry.build(user_id, recommendations, ttl or self.default_ttl)
        self._entries[user_id] = entry
        return entry

    async def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)
        logger.debug(f"[{redact_user_id(user_id)}] Invalidated recommendations cache")


def get_recommendation_cache() -> RecommendationCache:
    if settings.RECOMMENDATION_CACHE_BACKEND == "memory":
        logger.info("Using in-memory recommendation cache")
        return MemoryRecommendationCache()
    return RedisRecommendationCache()
