import math

from cultura.core.constants import SOURCE_CONTENT_BASED
from cultura.models.content import ContentSummary, UserContext
from cultura.models.recommendation import CandidateScore
from cultura.services.content_store.base import CandidateDataStore
from cultura.services.recommendation.sources.base import CandidateSource, difficulty_window

CATEGORY_MATCH_SCORE = 10.0
INTEREST_MATCH_SCORE = 3.0
DIFFICULTY_MATCH_BASE = 5.0
POPULARITY_FACTOR = 0.5
SEARCH_LIMIT = 50


class ContentBasedSource(CandidateSource):
    """
    Scores catalog items by how well their category, tags and difficulty match the user's profile.
    """

    source_name = SOURCE_CONTENT_BASED

    def __init__(self, store: CandidateDataStore, timeout: float = 3.0):
        super().__init__(timeout)
        self.store = store

    async def fetch(self, user_id: str, user_context: UserContext) -> list[CandidateScore]:
        items = await self.store.search_content(
            categories=user_context.preferred_categories,
            tags=user_context.interests,
            difficulty_range=difficulty_window(user_context.difficulty_level),
            exclude_content_ids=user_context.completed_content_ids,
            limit=SEARCH_LIMIT,
        )
        completed = user_context.completed
        scored = [self.score_item(item, user_context) for item in items if item.id not in completed]
        scored.sort(key=lambda c: (-c.raw_score, c.content_id))
        return scored

    def score_item(self, item: ContentSummary, user_context: UserContext) -> CandidateScore:
        score = 0.0
        reasons: list[str] = []

        if item.category and item.category in user_context.preferred_categories:
            score += CATEGORY_MATCH_SCORE
            reasons.append("Matches preferred category")

        matching = matching_interests(item.tags, user_context.interests)
        score += len(matching) * INTEREST_MATCH_SCORE
        if matching:
            reasons.append(f"Matches interests: {', '.join(matching)}")

        distance = abs(item.difficulty - user_context.difficulty_level)
        score += max(0.0, DIFFICULTY_MATCH_BASE - distance)
        if distance == 0:
            reasons.append("Perfect difficulty match")

        score += math.log(item.view_count + item.like_count + 1) * POPULARITY_FACTOR

        if score > 0 and not reasons:
            reasons.append("Popular with learners")

        return CandidateScore(content_id=item.id, raw_score=score, reasons=tuple(reasons), source_name=self.source_name)


def matching_interests(tags: list[str], interests: list[str]) -> list[str]:
    """Tags that overlap any interest as a case-insensitive substring, either way round."""
    lowered = [i.lower() for i in interests]
    matches = []
    for tag in tags:
        t = tag.lower()
        if any(t in interest or interest in t for interest in lowered):
            matches.append(tag)
    return matches
