import asyncio

import pytest

from cultura.core.constants import SOURCE_ORDER
from cultura.models.content import ContentMetadata, ContentSummary, SimilarUser, UserContext
from cultura.models.recommendation import CandidateScore, RankedRecommendation
from cultura.services.content_store.base import (
    CandidateDataStore,
    ContentMetadataStore,
    ContentPopularityStore,
    RecommendationLog,
    UserProfileStore,
)
from cultura.services.recommendation.cache import MemoryRecommendationCache
from cultura.services.recommendation.engine import RecommendationEngine
from cultura.services.recommendation.fallback import FallbackSupplier
from cultura.services.recommendation.merger import CandidateMerger
from cultura.services.recommendation.ranker import RecommendationRanker
from cultura.services.recommendation.sources.base import CandidateSource


class FakeStore(UserProfileStore, ContentMetadataStore, ContentPopularityStore, CandidateDataStore, RecommendationLog):
    """In-memory stand-in for the CRUD backend."""

    def __init__(
        self,
        contexts: dict[str, UserContext] | None = None,
        metadata: dict[str, ContentMetadata] | None = None,
        featured: list[str] | None = None,
        similar_users: list[SimilarUser] | None = None,
        content: list[ContentSummary] | None = None,
        trending: list[ContentSummary] | None = None,
    ):
        self.contexts = contexts or {}
        # None means "every id is known and long-form"
        self.metadata = metadata
        self.featured = featured or []
        self.similar_users = similar_users or []
        self.content = content or []
        self.trending = trending or []

        self.fail_context = False
        self.fail_metadata = False
        self.fail_featured = False
        self.context_calls = 0
        self.metadata_calls: list[list[str]] = []
        self.recorded: dict[str, list[RankedRecommendation]] = {}

    async def get_user_context(self, user_id: str) -> UserContext | None:
        self.context_calls += 1
        if self.fail_context:
            raise ConnectionError("profile store down")
        return self.contexts.get(user_id)

    async def get_metadata(self, content_ids: list[str]) -> dict[str, ContentMetadata]:
        self.metadata_calls.append(list(content_ids))
        if self.fail_metadata:
            raise ConnectionError("metadata store down")
        if self.metadata is None:
            return {cid: ContentMetadata(estimated_time=600) for cid in content_ids}
        return {cid: self.metadata[cid] for cid in content_ids if cid in self.metadata}

    async def get_featured_or_popular(self, limit: int) -> list[str]:
        if self.fail_featured:
            raise ConnectionError("popularity store down")
        return self.featured[:limit]

    async def find_similar_users(self, user_id, categories, difficulty_range, exclude_content_ids, limit=50):
        return self.similar_users[:limit]

    async def search_content(self, categories, tags, difficulty_range, exclude_content_ids, limit=50):
        return [c for c in self.content if c.id not in exclude_content_ids][:limit]

    async def get_trending_content(self, since_days, exclude_content_ids, limit=30):
        return [c for c in self.trending if c.id not in exclude_content_ids][:limit]

    async def list_available_content(self, exclude_content_ids, limit=100):
        return [c for c in self.content if c.id not in exclude_content_ids][:limit]

    async def record_recommendations(self, user_id, recommendations):
        self.recorded[user_id] = list(recommendations)


class StaticSource(CandidateSource):
    """Source returning a fixed list, optionally after a delay or by raising."""

    def __init__(
        self,
        source_name: str,
        scores: list[tuple[str, float]] | None = None,
        timeout: float = 1.0,
        delay: float = 0.0,
        error: Exception | None = None,
    ):
        super().__init__(timeout)
        self.source_name = source_name
        self.scores = scores or []
        self.delay = delay
        self.error = error
        self.calls = 0

    async def fetch(self, user_id: str, user_context: UserContext) -> list[CandidateScore]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [
            CandidateScore(
                content_id=cid,
                raw_score=score,
                reasons=(f"{self.source_name} likes {cid}",),
                source_name=self.source_name,
            )
            for cid, score in self.scores
        ]


def make_sources(**overrides: StaticSource) -> dict[str, StaticSource]:
    """One StaticSource per source name; keyword overrides use underscores (content_based=...)."""
    sources = {name: StaticSource(name) for name in SOURCE_ORDER}
    for key, source in overrides.items():
        sources[key.replace("_", "-")] = source
    return sources


def make_engine(
    store: FakeStore,
    sources: dict[str, StaticSource],
    cache=None,
    single_flight: bool = True,
    max_limit: int = 50,
) -> RecommendationEngine:
    return RecommendationEngine(
        sources=list(sources.values()),
        profile_store=store,
        merger=CandidateMerger(),
        ranker=RecommendationRanker(store),
        cache=cache or MemoryRecommendationCache(default_ttl=3600),
        fallback=FallbackSupplier(store),
        recommendation_log=store,
        cache_ttl=3600,
        default_limit=20,
        max_limit=max_limit,
        single_flight=single_flight,
    )


@pytest.fixture
def user_context() -> UserContext:
    return UserContext(
        interests=["music", "dance"],
        preferred_categories=["MUSIC"],
        difficulty_level=3,
        completed_content_ids=["C1"],
        liked_categories=["MUSIC"],
    )


@pytest.fixture
def store(user_context) -> FakeStore:
    return FakeStore(contexts={"U": user_context}, featured=["F1", "F2", "F3", "F4"])

