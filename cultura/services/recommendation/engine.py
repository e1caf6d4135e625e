import asyncio
import time
from enum import Enum

from cachetools import TTLCache
from loguru import logger
from pydantic import BaseModel, Field

from cultura.core.config import settings
from cultura.core.constants import SOURCE_ORDER
from cultura.core.security import redact_user_id
from cultura.models.content import UserContext
from cultura.models.recommendation import CandidateScore, NormalizedScore, RankedRecommendation
from cultura.services.content_store.base import RecommendationLog, UserProfileStore
from cultura.services.recommendation.cache import RecommendationCache
from cultura.services.recommendation.errors import (
    AllSourcesEmpty,
    CacheWriteFailure,
    ContextUnavailable,
    SourceError,
    SourceTimeout,
)
from cultura.services.recommendation.fallback import FallbackSupplier
from cultura.services.recommendation.merger import CandidateMerger
from cultura.services.recommendation.normalizer import ScoreNormalizer
from cultura.services.recommendation.ranker import RecommendationRanker
from cultura.services.recommendation.sources.base import CandidateSource


class PipelineState(str, Enum):
    CACHE_CHECK = "cache_check"
    FAN_OUT = "fan_out"
    MERGE = "merge"
    RANK = "rank"
    CACHE_WRITE = "cache_write"
    DONE = "done"
    ERROR_FALLBACK = "error_fallback"


class SourceResult(BaseModel):
    """Settled outcome of one source call. Failures carry an error and no candidates."""

    source_name: str
    candidates: list[CandidateScore] = Field(default_factory=list)
    error: str | None = None
    timed_out: bool = False
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class RecommendationResult(BaseModel):
    user_id: str
    recommendations: list[RankedRecommendation] = Field(default_factory=list)
    state: PipelineState = PipelineState.DONE
    cached: bool = False
    fallback: bool = False
    source_results: list[SourceResult] = Field(default_factory=list)

    def limited(self, limit: int) -> "RecommendationResult":
        return self.model_copy(update={"recommendations": self.recommendations[:limit]})


class RecommendationEngine:
    """
    Main orchestration: cache check, concurrent fan-out to the four candidate
    sources, normalize, merge, rank, cache write, with a non-personalized
    fallback when personalization is impossible.

    Lists are always computed and cached to `max_limit` items; callers get a
    prefix of it, so a cached list serves any smaller limit.
    """

    def __init__(
        self,
        sources: list[CandidateSource],
        profile_store: UserProfileStore,
        merger: CandidateMerger,
        ranker: RecommendationRanker,
        cache: RecommendationCache,
        fallback: FallbackSupplier,
        normalizer: ScoreNormalizer | None = None,
        recommendation_log: RecommendationLog | None = None,
        cache_ttl: int | None = None,
        default_limit: int | None = None,
        max_limit: int | None = None,
        single_flight: bool | None = None,
    ):
        names = [s.source_name for s in sources]
        if sorted(names) != sorted(SOURCE_ORDER):
            raise ValueError(f"Expected exactly one source each of {list(SOURCE_ORDER)}, got {names}")

        self.sources = sorted(sources, key=lambda s: SOURCE_ORDER.index(s.source_name))
        self.profile_store = profile_store
        self.merger = merger
        self.ranker = ranker
        self.cache = cache
        self.fallback = fallback
        self.normalizer = normalizer or ScoreNormalizer()
        self.recommendation_log = recommendation_log
        self.cache_ttl = cache_ttl or settings.RECOMMENDATION_CACHE_TTL_SECONDS
        self.default_limit = default_limit or settings.DEFAULT_RECOMMENDATION_LIMIT
        self.max_limit = max_limit or settings.MAX_RECOMMENDATION_LIMIT
        self.single_flight = settings.SINGLE_FLIGHT if single_flight is None else single_flight

        self._inflight: dict[str, asyncio.Task] = {}
        # user_id -> time of last invalidation; guards against writing a list computed before it
        self._invalidated_at: TTLCache = TTLCache(maxsize=10000, ttl=600)

    async def get_recommendations(
        self, user_id: str, limit: int | None = None, force_refresh: bool = False
    ) -> list[RankedRecommendation]:
        """Caller-facing entry point. Never raises; an empty list means no personalization available."""
        result = await self.recommend(user_id, limit=limit, force_refresh=force_refresh)
        return result.recommendations

    async def recommend(
        self, user_id: str, limit: int | None = None, force_refresh: bool = False
    ) -> RecommendationResult:
        limit = self._clamp_limit(limit)
        uid = redact_user_id(user_id)

        try:
            if not force_refresh:
                logger.debug(f"[{uid}] {PipelineState.CACHE_CHECK.value}")
                entry = await self.cache.get(user_id)
                if entry is not None:
                    logger.debug(f"[{uid}] Using cached recommendations computed at {entry.computed_at}")
                    return RecommendationResult(
                        user_id=user_id, recommendations=entry.recommendations, cached=True
                    ).limited(limit)

            if self.single_flight:
                result = await self._compute_shared(user_id)
            else:
                result = await self._compute(user_id)
            return result.limited(limit)
        except Exception as e:
            # Last line of defence: the caller always gets a list
            logger.exception(f"[{uid}] Recommendation pipeline crashed: {e}")
            recommendations = await self.fallback.fetch(limit)
            return RecommendationResult(
                user_id=user_id, recommendations=recommendations, state=PipelineState.ERROR_FALLBACK, fallback=True
            )

    async def invalidate(self, user_id: str) -> None:
        """Single invalidation entry point, registered on the interaction event bus."""
        self._invalidated_at[user_id] = time.monotonic()
        # Later requests must not join a computation that started before this point
        self._inflight.pop(user_id, None)
        try:
            await self.cache.invalidate(user_id)
        except Exception as e:
            logger.error(f"[{redact_user_id(user_id)}] Failed to invalidate recommendations cache: {e}")

    async def close(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        await self.cache.close()

    async def _compute_shared(self, user_id: str) -> RecommendationResult:
        task = self._inflight.get(user_id)
        if task is None:
            task = asyncio.ensure_future(self._compute(user_id))
            self._inflight[user_id] = task

            def _release(done: asyncio.Task) -> None:
                if self._inflight.get(user_id) is done:
                    del self._inflight[user_id]

            task.add_done_callback(_release)
        else:
            logger.debug(f"[{redact_user_id(user_id)}] Joining in-flight computation")
        return await asyncio.shield(task)

    async def _compute(self, user_id: str) -> RecommendationResult:
        uid = redact_user_id(user_id)
        started_at = time.monotonic()
        state = PipelineState.FAN_OUT
        source_results: list[SourceResult] = []

        try:
            logger.debug(f"[{uid}] {state.value}")
            context = await self._load_context(user_id)
            source_results = await self._fan_out(user_id, context)

            state = PipelineState.MERGE
            logger.debug(f"[{uid}] {state.value}")
            normalized = self._normalize(source_results)
            if not any(normalized.values()):
                raise AllSourcesEmpty("every candidate source returned nothing")
            merged = self.merger.merge(normalized)

            state = PipelineState.RANK
            logger.debug(f"[{uid}] {state.value} {len(merged)} candidates")
            ranked = await self.ranker.rank(merged, context, self.max_limit)
            if not ranked:
                raise AllSourcesEmpty("no candidates left after ranking")
        except ContextUnavailable as e:
            logger.warning(f"[{uid}] No user context, using fallback: {e}")
            return await self._fallback(user_id, source_results)
        except AllSourcesEmpty as e:
            logger.warning(f"[{uid}] Personalization produced nothing ({e}), using fallback")
            return await self._fallback(user_id, source_results)

        state = PipelineState.CACHE_WRITE
        logger.debug(f"[{uid}] {state.value}")
        await self._write_cache(user_id, ranked, started_at)
        await self._record(user_id, ranked)

        logger.info(
            f"[{uid}] Generated {len(ranked)} recommendations from "
            f"{sum(1 for r in source_results if r.candidates)}/{len(source_results)} sources"
        )
        return RecommendationResult(
            user_id=user_id, recommendations=ranked, state=PipelineState.DONE, source_results=source_results
        )

    async def _load_context(self, user_id: str) -> UserContext:
        try:
            context = await self.profile_store.get_user_context(user_id)
        except Exception as e:
            raise ContextUnavailable(f"profile store error: {e}") from e
        if context is None:
            raise ContextUnavailable("user has no profile")
        return context

    async def _fan_out(self, user_id: str, context: UserContext) -> list[SourceResult]:
        """Run every source concurrently and wait for all of them to settle."""
        tasks = [self._run_source(source, user_id, context) for source in self.sources]
        return list(await asyncio.gather(*tasks))

    async def _run_source(self, source: CandidateSource, user_id: str, context: UserContext) -> SourceResult:
        start = time.perf_counter()
        try:
            candidates = await asyncio.wait_for(source.fetch(user_id, context), timeout=source.timeout)
        except asyncio.TimeoutError:
            error = SourceTimeout(source.source_name, source.timeout)
            logger.warning(f"[{redact_user_id(user_id)}] {error}")
            return SourceResult(
                source_name=source.source_name, error=str(error), timed_out=True, elapsed=time.perf_counter() - start
            )
        except Exception as e:
            error = SourceError(source.source_name, str(e) or type(e).__name__)
            logger.error(f"[{redact_user_id(user_id)}] Candidate source failed: {error}")
            return SourceResult(source_name=source.source_name, error=str(error), elapsed=time.perf_counter() - start)

        elapsed = time.perf_counter() - start
        logger.debug(f"[{redact_user_id(user_id)}] {source.source_name}: {len(candidates)} candidates in {elapsed:.2f}s")
        return SourceResult(source_name=source.source_name, candidates=list(candidates or []), elapsed=elapsed)

    def _normalize(self, results: list[SourceResult]) -> dict[str, list[NormalizedScore]]:
        return {r.source_name: self.normalizer.normalize(r.candidates) for r in results}

    async def _write_cache(self, user_id: str, ranked: list[RankedRecommendation], started_at: float) -> None:
        invalidated_at = self._invalidated_at.get(user_id)
        if invalidated_at is not None and invalidated_at >= started_at:
            logger.info(f"[{redact_user_id(user_id)}] Preferences changed during computation, not caching")
            return
        try:
            await self.cache.put(user_id, ranked, self.cache_ttl)
        except CacheWriteFailure as e:
            logger.error(f"[{redact_user_id(user_id)}] Cache write failed: {e}")
        except Exception as e:
            logger.error(f"[{redact_user_id(user_id)}] Unexpected cache write error: {e}")

    async def _record(self, user_id: str, ranked: list[RankedRecommendation]) -> None:
        if self.recommendation_log is None:
            return
        try:
            await self.recommendation_log.record_recommendations(user_id, ranked)
        except Exception as e:
            logger.error(f"[{redact_user_id(user_id)}] Failed to store recommendations: {e}")

    async def _fallback(self, user_id: str, source_results: list[SourceResult]) -> RecommendationResult:
        logger.debug(f"[{redact_user_id(user_id)}] {PipelineState.ERROR_FALLBACK.value}")
        recommendations = await self.fallback.fetch(self.max_limit)
        return RecommendationResult(
            user_id=user_id,
            recommendations=recommendations,
            state=PipelineState.ERROR_FALLBACK,
            fallback=True,
            source_results=source_results,
        )

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.default_limit
        return max(0, min(int(limit), self.max_limit))
