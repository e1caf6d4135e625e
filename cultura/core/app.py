import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from cultura.api.main import api_router
from cultura.services.content_store.service import get_content_store_service
from cultura.services.events import InteractionEventBus, RedisEventListener
from cultura.services.gemini import GeminiService
from cultura.services.recommendation.cache import get_recommendation_cache
from cultura.services.recommendation.factory import create_recommendation_engine
from cultura.services.redis_service import redis_service

from .config import settings
from .version import __version__


def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    Engine and event bus may be preset on app.state (tests); otherwise they are built here.
    """
    store = None
    listener = None

    if getattr(app.state, "event_bus", None) is None:
        app.state.event_bus = InteractionEventBus()

    if getattr(app.state, "engine", None) is None:
        store = get_content_store_service()
        app.state.engine = create_recommendation_engine(store, get_recommendation_cache(), GeminiService())
        logger.info("Recommendation engine initialized")

    app.state.event_bus.subscribe(app.state.engine.invalidate)

    if settings.ENABLE_EVENT_LISTENER:
        listener = RedisEventListener(app.state.event_bus, redis_service, settings.INTERACTION_EVENTS_CHANNEL)
        listener.start()

    yield

    if listener is not None:
        await listener.stop()
    app.state.event_bus.unsubscribe(app.state.engine.invalidate)
    try:
        await app.state.engine.close()
        logger.info("Recommendation engine closed")
    except Exception as exc:
        logger.warning(f"Failed to close recommendation engine: {exc}")
    if store is not None:
        try:
            await store.close()
        except Exception as exc:
            logger.warning(f"Failed to close content store client: {exc}")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Cultura Recommender",
        description="Recommendation aggregation service for the Cultura learning app",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.APP_ENV == "production" else "/docs",
        redoc_url=None if settings.APP_ENV == "production" else "/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


app = create_app()
