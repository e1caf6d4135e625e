import asyncio
from collections.abc import Awaitable, Callable

import redis.asyncio as redis
from loguru import logger
from pydantic import ValidationError

from cultura.core.constants import PREFERENCE_EVENT_TYPES
from cultura.core.security import redact_user_id
from cultura.models.content import InteractionEvent
from cultura.services.redis_service import RedisService

InvalidationCallback = Callable[[str], Awaitable[None]]


class InteractionEventBus:
    """
    In-process fan-out of interaction events to registered invalidation callbacks.
    Only preference-affecting events reach the callbacks.
    """

    def __init__(self, preference_event_types: frozenset[str] = PREFERENCE_EVENT_TYPES):
        self.preference_event_types = preference_event_types
        self._callbacks: list[InvalidationCallback] = []

    def subscribe(self, callback: InvalidationCallback) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unsubscribe(self, callback: InvalidationCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def affects_preferences(self, event: InteractionEvent) -> bool:
        return event.type.upper() in self.preference_event_types

    async def publish(self, event: InteractionEvent) -> bool:
        """Deliver an event. Returns True when it triggered invalidation."""
        if not self.affects_preferences(event):
            return False

        logger.debug(f"[{redact_user_id(event.user_id)}] {event.type} event, invalidating recommendations")
        results = await asyncio.gather(*(cb(event.user_id) for cb in self._callbacks), return_exceptions=True)
        for res in results:
            if isinstance(res, Exception):
                logger.error(f"[{redact_user_id(event.user_id)}] Invalidation callback failed: {res}")
        return True


class RedisEventListener:
    """
    Forwards JSON interaction events published by the CRUD backend on a Redis channel to the bus.
    Connection failures are retried with capped exponential backoff for as long as the listener runs.
    """

    def __init__(
        self,
        bus: InteractionEventBus,
        redis: RedisService,
        channel: str,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
    ):
        self.bus = bus
        self.redis = redis
        self.channel = channel
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def handle_message(self, data: str | bytes) -> bool:
        try:
            event = InteractionEvent.model_validate_json(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed interaction event on {self.channel}: {e}")
            return False
        return await self.bus.publish(event)

    async def _listen(self) -> None:
        delay = self.retry_delay
        while True:
            pubsub = None
            try:
                client = await self.redis.get_client()
                pubsub = client.pubsub(ignore_subscribe_messages=True)
                await pubsub.subscribe(self.channel)
                logger.info(f"Listening for interaction events on {self.channel}")
                delay = self.retry_delay
                while True:
                    message = await pubsub.get_message(timeout=1.0)
                    if message and message.get("type") == "message":
                        await self.handle_message(message["data"])
            except (redis.RedisError, OSError) as exc:
                logger.error(f"Interaction event listener error on {self.channel}: {exc}. Retrying in {delay}s")
            finally:
                if pubsub is not None:
                    await self._close_pubsub(pubsub)
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_retry_delay)

    async def _close_pubsub(self, pubsub) -> None:
        try:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
        except (redis.RedisError, OSError) as exc:
            logger.debug(f"Ignoring error while closing pubsub on {self.channel}: {exc}")

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._listen())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.error(f"Interaction event listener stopped with error: {exc}")
        finally:
            self._task = None
