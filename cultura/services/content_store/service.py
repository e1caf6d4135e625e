import httpx
from loguru import logger

from cultura.core.config import settings
from cultura.core.security import redact_user_id
from cultura.models.content import ContentMetadata, ContentSummary, SimilarUser, UserContext
from cultura.models.recommendation import RankedRecommendation
from cultura.services.content_store.base import (
    CandidateDataStore,
    ContentMetadataStore,
    ContentPopularityStore,
    RecommendationLog,
    UserProfileStore,
)
from cultura.services.content_store.client import ContentStoreClient


class ContentStoreService(
    UserProfileStore, ContentMetadataStore, ContentPopularityStore, CandidateDataStore, RecommendationLog
):
    """
    HTTP implementation of every store collaborator the engine talks to.
    Errors propagate; the engine decides how each failure degrades.
    """

    def __init__(self, client: ContentStoreClient):
        self.client = client

    async def close(self):
        """Close the underlying HTTP client."""
        await self.client.close()

    async def get_user_context(self, user_id: str) -> UserContext | None:
        try:
            data = await self.client.get(f"/users/{user_id}/context")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info(f"[{redact_user_id(user_id)}] No profile found")
                return None
            raise
        if not data:
            return None
        return UserContext.model_validate(data)

    async def get_metadata(self, content_ids: list[str]) -> dict[str, ContentMetadata]:
        if not content_ids:
            return {}
        data = await self.client.post("/content/metadata", json={"ids": content_ids})
        items = (data or {}).get("items", {})
        return {cid: ContentMetadata.model_validate(meta) for cid, meta in items.items()}

    async def get_featured_or_popular(self, limit: int) -> list[str]:
        data = await self.client.get("/content/featured", params={"limit": limit})
        return [str(cid) for cid in (data or {}).get("items", [])][:limit]

    async def find_similar_users(
        self,
        user_id: str,
        categories: list[str],
        difficulty_range: tuple[int, int],
        exclude_content_ids: list[str],
        limit: int = 50,
    ) -> list[SimilarUser]:
        body = {
            "categories": categories,
            "difficultyMin": difficulty_range[0],
            "difficultyMax": difficulty_range[1],
            "interactionTypes": ["LIKE", "COMPLETE"],
            "excludeContentIds": exclude_content_ids,
            "limit": limit,
        }
        data = await self.client.post(f"/users/{user_id}/similar", json=body)
        return [SimilarUser.model_validate(u) for u in (data or {}).get("users", [])]

    async def search_content(
        self,
        categories: list[str],
        tags: list[str],
        difficulty_range: tuple[int, int],
        exclude_content_ids: list[str],
        limit: int = 50,
    ) -> list[ContentSummary]:
        body = {
            "anyOf": {
                "categories": categories,
                "tags": tags,
                "difficultyMin": difficulty_range[0],
                "difficultyMax": difficulty_range[1],
            },
            "excludeContentIds": exclude_content_ids,
            "activeOnly": True,
            "limit": limit,
        }
        data = await self.client.post("/content/search", json=body)
        return [ContentSummary.model_validate(c) for c in (data or {}).get("items", [])]

    async def get_trending_content(
        self, since_days: int, exclude_content_ids: list[str], limit: int = 30
    ) -> list[ContentSummary]:
        body = {"sinceDays": since_days, "excludeContentIds": exclude_content_ids, "limit": limit}
        data = await self.client.post("/content/trending", json=body)
        return [ContentSummary.model_validate(c) for c in (data or {}).get("items", [])]

    async def list_available_content(self, exclude_content_ids: list[str], limit: int = 100) -> list[ContentSummary]:
        body = {"excludeContentIds": exclude_content_ids, "activeOnly": True, "limit": limit}
        data = await self.client.post("/content/search", json=body)
        return [ContentSummary.model_validate(c) for c in (data or {}).get("items", [])]

    async def record_recommendations(self, user_id: str, recommendations: list[RankedRecommendation]) -> None:
        body = {
            "ttlSeconds": settings.RECOMMENDATION_CACHE_TTL_SECONDS,
            "recommendations": [
                {
                    "contentId": rec.content_id,
                    "score": rec.final_score,
                    "reason": "; ".join(rec.source_summary.reasons),
                    "algorithm": ", ".join(rec.source_summary.sources),
                }
                for rec in recommendations
            ],
        }
        await self.client.post(f"/users/{user_id}/recommendations", json=body)


def get_content_store_service() -> ContentStoreService:
    client = ContentStoreClient(
        base_url=settings.CONTENT_STORE_URL,
        api_key=settings.CONTENT_STORE_API_KEY,
        timeout=settings.CONTENT_STORE_TIMEOUT,
    )
    return ContentStoreService(client)
