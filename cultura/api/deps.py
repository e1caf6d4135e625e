from fastapi import HTTPException, Request

from cultura.services.events import InteractionEventBus
from cultura.services.recommendation.engine import RecommendationEngine


def get_engine(request: Request) -> RecommendationEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Recommendation engine is not ready")
    return engine


def get_event_bus(request: Request) -> InteractionEventBus:
    bus = getattr(request.app.state, "event_bus", None)
    if bus is None:
        raise HTTPException(status_code=503, detail="Interaction event bus is not ready")
    return bus
