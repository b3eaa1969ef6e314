"""Redis Pub/Sub fan-out: publish side + subscriber background task.

With several gateway processes, a room or user may have sockets in any of
them. Every delivery is published once and each process hands it to its own
``ConnectionManager``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from marketplace_chat.infrastructure.bus.serializer import FanoutEnvelope, FanoutTarget
from marketplace_chat.infrastructure.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)


class RedisNotifier:
    """Implements application.ports.notifier.Notifier over a Redis channel."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def to_room(
        self,
        conversation_id: int,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        await self._publish(FanoutEnvelope(
            FanoutTarget.ROOM, event, data,
            conversation_id=conversation_id, exclude_connection=exclude_connection,
        ))

    async def to_user(self, user_id: int, event: str, data: dict[str, Any]) -> None:
        await self._publish(FanoutEnvelope(FanoutTarget.USER, event, data, user_id=user_id))

    async def to_all(
        self,
        event: str,
        data: dict[str, Any],
        *,
        exclude_connection: str | None = None,
    ) -> None:
        await self._publish(FanoutEnvelope(
            FanoutTarget.ALL, event, data, exclude_connection=exclude_connection,
        ))

    async def _publish(self, envelope: FanoutEnvelope) -> None:
        # Delivery is best effort; the message itself is already committed.
        try:
            await self._redis.publish(self._channel, envelope.serialize())
        except RedisError:
            logger.warning("Fan-out publish of %s failed", envelope.event, exc_info=True)


OnEnvelopeCallback = Callable[[FanoutEnvelope], Coroutine[Any, Any, None]]


def local_delivery(manager: ConnectionManager) -> OnEnvelopeCallback:
    """Callback handing a received envelope to this process' sockets."""

    async def deliver(envelope: FanoutEnvelope) -> None:
        match envelope.target:
            case FanoutTarget.ROOM if envelope.conversation_id is not None:
                await manager.to_room(
                    envelope.conversation_id, envelope.event, envelope.data,
                    exclude_connection=envelope.exclude_connection,
                )
            case FanoutTarget.USER if envelope.user_id is not None:
                await manager.to_user(envelope.user_id, envelope.event, envelope.data)
            case FanoutTarget.ALL:
                await manager.to_all(
                    envelope.event, envelope.data,
                    exclude_connection=envelope.exclude_connection,
                )
            case _:
                logger.warning("Dropping fan-out envelope without a target: %s", envelope)

    return deliver


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches envelopes."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEnvelopeCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-fanout-subscriber")
        logger.info("Fan-out subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Fan-out subscriber stopped")

    async def _listen(self) -> None:
        while True:
            try:
                await self._consume()
            except asyncio.CancelledError:
                raise
            except RedisError:
                logger.exception("Fan-out subscriber lost Redis, retrying in 1s")
                await asyncio.sleep(1)

    async def _consume(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await self._callback(FanoutEnvelope.deserialize(message["data"]))
                except Exception:
                    logger.exception("Error processing fan-out message")
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
