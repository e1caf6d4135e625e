from loguru import logger

from cultura.core.constants import FALLBACK_REASONS, FALLBACK_SCORE_STEP, FALLBACK_TOP_SCORE, SOURCE_FALLBACK
from cultura.models.recommendation import RankedRecommendation, SourceSummary
from cultura.services.content_store.base import ContentPopularityStore


class FallbackSupplier:
    """
    Non-personalized list shaped exactly like a ranked result, used when personalization is impossible.
    """

    def __init__(self, popularity_store: ContentPopularityStore):
        self.popularity_store = popularity_store

    async def fetch(self, limit: int) -> list[RankedRecommendation]:
        if limit <= 0:
            return []
        try:
            content_ids = await self.popularity_store.get_featured_or_popular(limit)
        except Exception as e:
            logger.error(f"Fallback recommendations failed: {e}")
            return []

        results = []
        for index, content_id in enumerate(dict.fromkeys(content_ids)):
            if index >= limit:
                break
            results.append(
                RankedRecommendation(
                    content_id=content_id,
                    final_score=FALLBACK_TOP_SCORE - FALLBACK_SCORE_STEP * index,
                    rank=index + 1,
                    source_summary=SourceSummary(sources=[SOURCE_FALLBACK], reasons=list(FALLBACK_REASONS)),
                )
            )
        return results
