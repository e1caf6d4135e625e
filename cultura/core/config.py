from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from cultura.core.version import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PORT: int = 8000
    APP_ENV: Literal["development", "production", "test"] = "production"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    REDIS_URL: str = "redis://redis:6379/0"
    # Maximum number of connections Redis client will open per process
    REDIS_MAX_CONNECTIONS: int = 20

    # Recommendation cache
    RECOMMENDATION_CACHE_BACKEND: Literal["redis", "memory"] = "redis"
    RECOMMENDATION_CACHE_TTL_SECONDS: int = 86400  # 24 hours
    MEMORY_CACHE_MAX_USERS: int = 10000

    # CRUD backend that owns users, content and interactions
    CONTENT_STORE_URL: str = "http://backend:3000/api/v1/internal"
    CONTENT_STORE_API_KEY: str | None = None
    CONTENT_STORE_TIMEOUT: float = 5.0

    # Source weights, must sum to 1.0
    WEIGHT_COLLABORATIVE: float = 0.30
    WEIGHT_CONTENT_BASED: float = 0.25
    WEIGHT_GENERATIVE: float = 0.25
    WEIGHT_TRENDING: float = 0.20

    # Per-source fan-out timeouts
    TIMEOUT_COLLABORATIVE_SECONDS: float = 3.0
    TIMEOUT_CONTENT_BASED_SECONDS: float = 3.0
    TIMEOUT_GENERATIVE_SECONDS: float = 8.0
    TIMEOUT_TRENDING_SECONDS: float = 2.0

    # Ranking
    MOBILE_FRIENDLY_MAX_TIME: int = 60
    MOBILE_BOOST: float = 1.1
    DEFAULT_RECOMMENDATION_LIMIT: int = 20
    MAX_RECOMMENDATION_LIMIT: int = 50
    # Let concurrent requests for the same user share one computation
    SINGLE_FLIGHT: bool = True

    # Interaction events published by the CRUD backend
    ENABLE_EVENT_LISTENER: bool = False
    INTERACTION_EVENTS_CHANNEL: str = "cultura:interactions"

    # AI
    DEFAULT_GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_API_KEY: str | None = None


settings = Settings()

APP_VERSION = __version__
