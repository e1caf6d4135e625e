from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cultura.api.deps import get_engine
from cultura.core.config import settings
from cultura.core.security import redact_user_id
from cultura.models.recommendation import RankedRecommendation
from cultura.services.recommendation.engine import RecommendationEngine

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


class RecommendationsMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    count: int
    sources: list[str] = Field(default_factory=list)
    generated_at: datetime
    cached: bool = False
    fallback: bool = False


class RecommendationsResponse(BaseModel):
    recommendations: list[RankedRecommendation]
    meta: RecommendationsMeta


@router.get("/{user_id}", response_model=RecommendationsResponse)
async def get_recommendations(
    user_id: str,
    limit: int = Query(default=settings.DEFAULT_RECOMMENDATION_LIMIT, ge=1, le=settings.MAX_RECOMMENDATION_LIMIT),
    refresh: bool = Query(default=False, description="Bypass the cache and recompute"),
    engine: RecommendationEngine = Depends(get_engine),
) -> RecommendationsResponse:
    """
    Personalized recommendations for a user.

    An empty list means no personalization is available right now; it is not an error.
    """
    result = await engine.recommend(user_id, limit=limit, force_refresh=refresh)

    sources = sorted({s for rec in result.recommendations for s in rec.source_summary.sources})
    logger.info(
        f"[{redact_user_id(user_id)}] Returning {len(result.recommendations)} recommendations "
        f"(cached={result.cached}, fallback={result.fallback})"
    )
    return RecommendationsResponse(
        recommendations=result.recommendations,
        meta=RecommendationsMeta(
            count=len(result.recommendations),
            sources=sources,
            generated_at=datetime.now(timezone.utc),
            cached=result.cached,
            fallback=result.fallback,
        ),
    )
