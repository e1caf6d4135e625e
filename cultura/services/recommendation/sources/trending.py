import math

from cultura.core.constants import SOURCE_TRENDING
from cultura.models.content import ContentSummary, UserContext
from cultura.models.recommendation import CandidateScore
from cultura.services.content_store.base import CandidateDataStore
from cultura.services.recommendation.sources.base import CandidateSource

TRENDING_WINDOW_DAYS = 7
TRENDING_LIMIT = 30
PREFERRED_CATEGORY_MULTIPLIER = 1.5
DIFFICULTY_MULTIPLIER = 1.2


class TrendingSource(CandidateSource):
    """
    Recent content ranked by engagement, nudged toward the user's categories and level.
    """

    source_name = SOURCE_TRENDING

    def __init__(self, store: CandidateDataStore, timeout: float = 2.0):
        super().__init__(timeout)
        self.store = store

    async def fetch(self, user_id: str, user_context: UserContext) -> list[CandidateScore]:
        items = await self.store.get_trending_content(
            since_days=TRENDING_WINDOW_DAYS,
            exclude_content_ids=user_context.completed_content_ids,
            limit=TRENDING_LIMIT,
        )
        completed = user_context.completed
        scored = [self.score_item(item, user_context) for item in items if item.id not in completed]
        scored.sort(key=lambda c: (-c.raw_score, c.content_id))
        return scored

    def score_item(self, item: ContentSummary, user_context: UserContext) -> CandidateScore:
        reasons = ["Currently trending"]
        score = math.log(item.view_count + 1) * 2
        score += item.like_count * 3
        score += item.share_count * 5

        if item.category and item.category in user_context.preferred_categories:
            score *= PREFERRED_CATEGORY_MULTIPLIER
            reasons.append("Trending in preferred category")

        if abs(item.difficulty - user_context.difficulty_level) <= 1:
            score *= DIFFICULTY_MULTIPLIER

        return CandidateScore(content_id=item.id, raw_score=score, reasons=tuple(reasons), source_name=self.source_name)
