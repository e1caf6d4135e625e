from cultura.core.config import Settings, settings
from cultura.services.content_store.service import ContentStoreService
from cultura.services.gemini import GeminiService
from cultura.services.recommendation.cache import RecommendationCache
from cultura.services.recommendation.engine import RecommendationEngine
from cultura.services.recommendation.fallback import FallbackSupplier
from cultura.services.recommendation.merger import CandidateMerger, SourceWeights
from cultura.services.recommendation.ranker import RecommendationRanker
from cultura.services.recommendation.sources import (
    CollaborativeSource,
    ContentBasedSource,
    GenerativeSource,
    TrendingSource,
)


def create_recommendation_engine(
    store: ContentStoreService,
    cache: RecommendationCache,
    llm: GeminiService,
    config: Settings = settings,
) -> RecommendationEngine:
    """Wire the engine from settings. Raises ValueError when the configured weights are invalid."""
    sources = [
        CollaborativeSource(store, timeout=config.TIMEOUT_COLLABORATIVE_SECONDS),
        ContentBasedSource(store, timeout=config.TIMEOUT_CONTENT_BASED_SECONDS),
        GenerativeSource(store, llm, timeout=config.TIMEOUT_GENERATIVE_SECONDS),
        TrendingSource(store, timeout=config.TIMEOUT_TRENDING_SECONDS),
    ]
    return RecommendationEngine(
        sources=sources,
        profile_store=store,
        merger=CandidateMerger(SourceWeights.from_settings(config)),
        ranker=RecommendationRanker(
            store,
            mobile_friendly_max_time=config.MOBILE_FRIENDLY_MAX_TIME,
            mobile_boost=config.MOBILE_BOOST,
        ),
        cache=cache,
        fallback=FallbackSupplier(store),
        recommendation_log=store,
        cache_ttl=config.RECOMMENDATION_CACHE_TTL_SECONDS,
        default_limit=config.DEFAULT_RECOMMENDATION_LIMIT,
        max_limit=config.MAX_RECOMMENDATION_LIMIT,
        single_flight=config.SINGLE_FLIGHT,
    )
