import redis.asyncio as redis
from loguru import logger

from cultura.core.config import settings


class RedisService:
    """
    Owns the process-wide Redis connection pool shared by the recommendation cache
    and the interaction event listener. Callers issue commands on `get_client()`.
    """

    def __init__(self, url: str | None = None) -> None:
        self._url = url or settings.REDIS_URL
        self._client: redis.Redis | None = None
        if not self._url:
            logger.warning("REDIS_URL is not set. Redis operations will fail until configured.")

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            logger.info(f"Opening Redis pool (max {settings.REDIS_MAX_CONNECTIONS} connections)")
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                health_check_interval=30,
                socket_keepalive=True,
            )
        return self._client

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
            logger.info("Redis pool closed")
        except (redis.RedisError, OSError) as exc:
            logger.warning(f"Failed to close Redis pool: {exc}")
        finally:
            self._client = None


redis_service = RedisService()
