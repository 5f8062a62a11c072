"""Base transport interface for kitchen messaging."""

from __future__ import annotations

import abc
import uuid
from typing import Any, AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import KitchenMessage

RawMessageT = TypeVar("RawMessageT")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Abstract base transport for message brokers."""

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, message: KitchenMessage) -> None:
        """Send a message to a topic/queue."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, KitchenMessage]]:
        """Yield raw transport message and KitchenMessage pairs.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Acknowledge successful processing."""
        raise NotImplementedError

    async def nack(self, raw_message: RawMessageT, requeue: bool = True) -> None:
        """Negatively acknowledge (default to ack if unsupported)."""
        await self.ack(raw_message)

    @abc.abstractmethod
    async def request(
        self, topic: str, message: KitchenMessage, timeout: float
    ) -> KitchenMessage:
        """Send ``message`` and wait for the single reply correlated with it.

        Raises:
            asyncio.TimeoutError: If no reply arrives within ``timeout`` seconds.
        """
        raise NotImplementedError

    async def reply(self, request: KitchenMessage, data: Any) -> None:
        """Answer a message received through ``request``."""
        if not request.reply_to:
            raise ValueError(f"Message {request.message_id} expects no reply")
        response = KitchenMessage(
            pattern=request.pattern,
            data=data,
            correlation_id=request.correlation_id,
        )
        await self.publish(request.reply_to, response)

    @staticmethod
    def _prepare_request(message: KitchenMessage, reply_to: str) -> KitchenMessage:
        return message.model_copy(
            update={
                "correlation_id": message.correlation_id or str(uuid.uuid4()),
                "reply_to": reply_to,
            }
        )
