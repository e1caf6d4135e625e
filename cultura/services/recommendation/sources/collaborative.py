from collections import defaultdict

from cultura.core.constants import SOURCE_COLLABORATIVE
from cultura.models.content import UserContext
from cultura.models.recommendation import CandidateScore
from cultura.services.content_store.base import CandidateDataStore
from cultura.services.recommendation.sources.base import CandidateSource, difficulty_window

# interaction type -> (score increment, reason)
INTERACTION_SIGNALS: dict[str, tuple[float, str]] = {
    "LIKE": (1.0, "Liked by similar users"),
    "COMPLETE": (2.0, "Completed by similar users"),
}

SIMILAR_USERS_LIMIT = 50
MAX_CANDIDATES = 20


class CollaborativeSource(CandidateSource):
    """
    Scores content by what users with overlapping categories and similar difficulty liked or completed.
    """

    source_name = SOURCE_COLLABORATIVE

    def __init__(self, store: CandidateDataStore, timeout: float = 3.0):
        super().__init__(timeout)
        self.store = store

    async def fetch(self, user_id: str, user_context: UserContext) -> list[CandidateScore]:
        if not user_context.preferred_categories:
            return []

        similar_users = await self.store.find_similar_users(
            user_id,
            categories=user_context.preferred_categories,
            difficulty_range=difficulty_window(user_context.difficulty_level),
            exclude_content_ids=user_context.completed_content_ids,
            limit=SIMILAR_USERS_LIMIT,
        )

        completed = user_context.completed
        scores: dict[str, float] = defaultdict(float)
        reasons: dict[str, list[str]] = defaultdict(list)

        for other in similar_users:
            if other.user_id == user_id:
                continue
            for interaction in other.interactions:
                signal = INTERACTION_SIGNALS.get(interaction.type)
                if signal is None or interaction.content_id in completed:
                    continue
                increment, reason = signal
                scores[interaction.content_id] += increment
                if reason not in reasons[interaction.content_id]:
                    reasons[interaction.content_id].append(reason)

        ranked = sorted(scores.items(), key=lambda x: (-x[1], x[0]))[:MAX_CANDIDATES]
        return [
            CandidateScore(
                content_id=cid,
                raw_score=score,
                reasons=tuple(reasons[cid]),
                source_name=self.source_name,
            )
            for cid, score in ranked
        ]
