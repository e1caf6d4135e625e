from fastapi import APIRouter, Depends

from cultura.api.deps import get_event_bus
from cultura.models.content import InteractionEvent
from cultura.services.events import InteractionEventBus

router = APIRouter(prefix="/interactions", tags=["interactions"])


@router.post("/events")
async def publish_interaction_event(
    event: InteractionEvent, bus: InteractionEventBus = Depends(get_event_bus)
) -> dict[str, bool]:
    """
    Entry point for the CRUD backend's interaction tracking.
    Preference-affecting events (likes, saves, completions, profile edits) invalidate cached recommendations.
    """
    invalidated = await bus.publish(event)
    return {"invalidated": invalidated}
