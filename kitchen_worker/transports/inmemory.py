"""In-memory transport for testing."""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict, deque
from typing import AsyncIterator, Deque, Dict, Optional, Tuple

from ..contracts import KitchenMessage
from .base import BaseTransport

_POLL_INTERVAL = 0.01


class InMemoryTransport(BaseTransport[Tuple[str, KitchenMessage]]):
    """Simple in-process queue for unit tests."""

    def __init__(self) -> None:
        self._queues: Dict[str, Deque[Tuple[str, KitchenMessage]]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._delivered: Dict[str, str] = {}
        self.rejected: list[Tuple[str, KitchenMessage]] = []

    async def publish(self, topic: str, message: KitchenMessage) -> None:
        """Publish message to in-memory queue."""
        raw = (message.to_json(), message)
        async with self._lock:
            self._queues[topic].append(raw)

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[Tuple[str, KitchenMessage], KitchenMessage]]:
        """Subscribe to messages from topic.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        start_time = asyncio.get_running_loop().time() if lifespan else None

        while True:
            if lifespan and start_time:
                elapsed = asyncio.get_running_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            async with self._lock:
                raw_message = (
                    self._queues[topic].popleft() if self._queues[topic] else None
                )
            if raw_message is not None:
                self._delivered[raw_message[1].message_id] = topic
                yield raw_message, raw_message[1]
                continue

            await asyncio.sleep(_POLL_INTERVAL)

    async def ack(self, raw_message: Tuple[str, KitchenMessage]) -> None:
        """Forget the delivery; the message already left the queue."""
        self._delivered.pop(raw_message[1].message_id, None)

    async def nack(
        self, raw_message: Tuple[str, KitchenMessage], requeue: bool = True
    ) -> None:
        topic = self._delivered.pop(raw_message[1].message_id, None)
        if requeue and topic is not None:
            async with self._lock:
                self._queues[topic].appendleft(raw_message)
        else:
            self.rejected.append(raw_message)

    async def request(
        self, topic: str, message: KitchenMessage, timeout: float
    ) -> KitchenMessage:
        reply_to = f"reply.{uuid.uuid4()}"
        outgoing = self._prepare_request(message, reply_to)
        await self.publish(topic, outgoing)
        try:
            return await asyncio.wait_for(
                self._await_reply(reply_to, outgoing.correlation_id), timeout
            )
        finally:
            async with self._lock:
                self._queues.pop(reply_to, None)

    async def _await_reply(
        self, reply_to: str, correlation_id: Optional[str]
    ) -> KitchenMessage:
        while True:
            async with self._lock:
                queue = self._queues[reply_to]
                while queue:
                    _, candidate = queue.popleft()
                    if candidate.correlation_id == correlation_id:
                        return candidate
            await asyncio.sleep(_POLL_INTERVAL)
