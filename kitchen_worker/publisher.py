"""Emit order status changes to the orchestrating service."""

from __future__ import annotations

import asyncio
import logging
from typing import Literal, Optional, Sequence

from .constants import MANAGER_QUEUE, ORDER_STATUS_CHANGED
from .contracts import KitchenMessage, OrderStatusChange
from .transports import BaseTransport

logger = logging.getLogger(__name__)

PublishMode = Literal["await", "background"]


class StatusPublisher:
    """Publish ``order_status_changed`` events without ever raising.

    In ``await`` mode each call returns once the transport accepted the
    event. In ``background`` mode events are queued and sent by a single
    sender task, so they still leave in the order they were published.
    Failures are logged in both modes.
    """

    def __init__(
        self,
        transport: BaseTransport,
        topic: str = MANAGER_QUEUE,
        mode: PublishMode = "await",
    ) -> None:
        if mode not in ("await", "background"):
            raise ValueError(f"Unsupported publish mode: {mode}")
        self._transport = transport
        self._topic = topic
        self.mode = mode
        self._outbox: Optional[asyncio.Queue[KitchenMessage]] = None
        self._sender: Optional[asyncio.Task[None]] = None

    async def publish(self, changes: Sequence[OrderStatusChange]) -> None:
        message = KitchenMessage(
            pattern=ORDER_STATUS_CHANGED,
            data=[change.to_wire() for change in changes],
        )
        if self.mode == "await":
            await self._send(message)
            return

        if self._sender is None or self._sender.done():
            self._outbox = asyncio.Queue()
            self._sender = asyncio.create_task(self._drain_outbox(self._outbox))
        self._outbox.put_nowait(message)

    async def drain(self) -> None:
        """Wait until every queued event has been handed to the transport."""
        if self._outbox is not None and self._sender is not None and not self._sender.done():
            await self._outbox.join()

    async def close(self) -> None:
        await self.drain()
        if self._sender is not None:
            self._sender.cancel()
            try:
                await self._sender
            except asyncio.CancelledError:
                pass
            self._sender = None

    async def _drain_outbox(self, outbox: "asyncio.Queue[KitchenMessage]") -> None:
        while True:
            message = await outbox.get()
            try:
                await self._send(message)
            finally:
                outbox.task_done()

    async def _send(self, message: KitchenMessage) -> None:
        statuses = [(item["id"], item["statusId"]) for item in message.data]
        try:
            await self._transport.publish(self._topic, message)
        except Exception:
            logger.exception(f"Failed to publish status change {statuses}")
            return
        logger.info(f"Published status change {statuses}")
