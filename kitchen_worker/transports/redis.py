"""Redis transport for cross-process messaging."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Optional, Tuple

import redis.asyncio as redis
from pydantic import ValidationError

from ..contracts import KitchenMessage
from .base import BaseTransport

logger = logging.getLogger(__name__)

KEY_PREFIX = "kitchen:"
# late replies recreate a reply list after the requester gave up on it
REPLY_TTL_SECONDS = 60


class RedisTransport(BaseTransport[str]):
    """Redis-based transport using lists as queues."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, topic: str, message: KitchenMessage) -> None:
        """Publish message to Redis list (acting as queue)."""
        if not self._redis:
            await self.connect()

        await self._redis.lpush(f"{KEY_PREFIX}{topic}", message.to_json())

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[str, KitchenMessage]]:
        """Subscribe to messages from Redis queue."""
        if not self._redis:
            await self.connect()

        queue_name = f"{KEY_PREFIX}{topic}"
        start_time = asyncio.get_running_loop().time() if lifespan else None

        while True:
            if lifespan and start_time:
                elapsed = asyncio.get_running_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            result = await self._redis.brpop(queue_name, timeout=1)
            if not result:
                continue

            _, message_json = result
            try:
                message = KitchenMessage.from_json(message_json)
            except ValidationError as e:
                logger.error(f"Dropping unreadable message on {queue_name}: {e}")
                continue
            yield message_json, message

    async def ack(self, raw_message: str) -> None:
        """No-op acknowledgment for Redis transport (message already consumed)."""
        pass

    async def reply(self, request: KitchenMessage, data: Any) -> None:
        await super().reply(request, data)
        await self._redis.expire(f"{KEY_PREFIX}{request.reply_to}", REPLY_TTL_SECONDS)

    async def request(
        self, topic: str, message: KitchenMessage, timeout: float
    ) -> KitchenMessage:
        if not self._redis:
            await self.connect()

        reply_to = f"reply.{uuid.uuid4()}"
        outgoing = self._prepare_request(message, reply_to)
        await self.publish(topic, outgoing)
        try:
            return await asyncio.wait_for(
                self._await_reply(f"{KEY_PREFIX}{reply_to}", outgoing.correlation_id),
                timeout,
            )
        finally:
            await self._redis.delete(f"{KEY_PREFIX}{reply_to}")

    async def _await_reply(
        self, queue_name: str, correlation_id: Optional[str]
    ) -> KitchenMessage:
        while True:
            result = await self._redis.brpop(queue_name, timeout=1)
            if not result:
                continue
            reply = KitchenMessage.from_json(result[1])
            if reply.correlation_id == correlation_id:
                return reply
