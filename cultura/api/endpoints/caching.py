from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from cultura.api.deps import get_engine
from cultura.core.security import redact_user_id
from cultura.services.recommendation.engine import RecommendationEngine

router = APIRouter(prefix="/cache", tags=["cache"])


@router.delete("/recommendations/{user_id}")
async def invalidate_recommendations(user_id: str, engine: RecommendationEngine = Depends(get_engine)):
    """
    Drop the cached recommendation list for a user.
    The next request recomputes it from the candidate sources.
    """
    try:
        await engine.invalidate(user_id)
        logger.info(f"[{redact_user_id(user_id)}] Recommendations cache cleared via API endpoint")
        return {"message": "Recommendations cache cleared", "status": "success"}
    except Exception as e:
        logger.error(f"Error clearing recommendations cache: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to clear cache: {str(e)}")
