from loguru import logger

from cultura.models.content import ContentMetadata, UserContext
from cultura.models.recommendation import MergedCandidate, RankedRecommendation, SourceSummary
from cultura.services.content_store.base import ContentMetadataStore
from cultura.services.recommendation.errors import MetadataFetchFailure


class RecommendationRanker:
    """
    Final ordering: drop completed content, nudge short content for mobile,
    sort deterministically, truncate, assign ranks.
    """

    def __init__(
        self,
        metadata_store: ContentMetadataStore,
        mobile_friendly_max_time: int = 60,
        mobile_boost: float = 1.1,
    ):
        self.metadata_store = metadata_store
        self.mobile_friendly_max_time = mobile_friendly_max_time
        self.mobile_boost = mobile_boost

    async def rank(
        self, candidates: list[MergedCandidate], user_context: UserContext, limit: int
    ) -> list[RankedRecommendation]:
        # 1. Completed content never comes back
        completed = user_context.completed
        remaining = [c for c in candidates if c.content_id not in completed]

        # 2. Mobile boost (skipped when metadata is unavailable)
        try:
            metadata = await self._fetch_metadata([c.content_id for c in remaining])
        except MetadataFetchFailure as e:
            logger.warning(f"Ranking without metadata adjustments: {e}")
            metadata = None

        scored = []
        for c in remaining:
            score = c.aggregate_score
            if metadata is not None:
                meta = metadata.get(c.content_id)
                if meta is None:
                    # Unknown to the store means inactive or deleted
                    continue
                if meta.estimated_time <= self.mobile_friendly_max_time:
                    score *= self.mobile_boost
            scored.append((score, c))

        # 3. Highest score first, smaller content id wins ties
        scored.sort(key=lambda x: (-x[0], x[1].content_id))

        # 4 & 5. Truncate and assign ranks
        return [
            RankedRecommendation(
                content_id=c.content_id,
                final_score=score,
                rank=position,
                source_summary=SourceSummary(sources=sorted(c.contributing_sources), reasons=list(c.reasons)),
            )
            for position, (score, c) in enumerate(scored[: max(0, limit)], start=1)
        ]

    async def _fetch_metadata(self, content_ids: list[str]) -> dict[str, ContentMetadata]:
        if not content_ids:
            return {}
        try:
            return await self.metadata_store.get_metadata(content_ids)
        except Exception as e:
            raise MetadataFetchFailure(str(e)) from e
