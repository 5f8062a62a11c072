"""Queue consumer that feeds dispatched orders into the fulfillment saga."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from .config import KitchenConfig, load_config
from .constants import ORDER_DISPATCHED
from .contracts import KitchenMessage, parse_dispatched_orders
from .inventory import InventoryClient
from .persistence import KitchenRepository, get_repository
from .publisher import StatusPublisher
from .recipes import RecipeCatalog, RecipeSelector
from .saga import OrderFulfillmentSaga
from .transports import BaseTransport, get_transport

logger = logging.getLogger(__name__)


class KitchenWorker:
    """Consume ``order_dispatched`` messages one at a time."""

    def __init__(
        self,
        transport: BaseTransport,
        saga: OrderFulfillmentSaga,
        topic: str,
        publisher: Optional[StatusPublisher] = None,
    ) -> None:
        self._transport = transport
        self._saga = saga
        self._topic = topic
        self._publisher = publisher

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Start listening for dispatched orders on the kitchen queue."""
        logger.info(f"Kitchen worker listening on {self._topic}")
        try:
            async for raw_message, message in self._transport.subscribe(
                self._topic, lifespan=lifespan
            ):
                await self.handle(raw_message, message)
        finally:
            if self._publisher is not None:
                await self._publisher.close()
            await self._transport.disconnect()

    async def handle(self, raw_message: Any, message: KitchenMessage) -> None:
        """Process one inbound message and settle it with the broker.

        The message is acknowledged once the saga ran, whatever its outcome;
        failed batches are reported through status events, not redelivery.
        """
        if message.pattern != ORDER_DISPATCHED:
            logger.warning(
                f"Rejecting message {message.message_id} with unknown pattern {message.pattern!r}"
            )
            await self._transport.nack(raw_message, requeue=False)
            return

        try:
            batch = parse_dispatched_orders(message.data)
        except ValidationError as e:
            logger.error(f"Rejecting malformed order batch {message.message_id}: {e}")
            await self._transport.nack(raw_message, requeue=False)
            return

        if not batch:
            logger.warning(f"Acking empty order batch {message.message_id}")
            await self._transport.ack(raw_message)
            return

        await self._saga.fulfill(batch)
        await self._transport.ack(raw_message)


def build_worker(
    config: Optional[KitchenConfig] = None,
    transport: Optional[BaseTransport] = None,
    repository: Optional[KitchenRepository] = None,
) -> KitchenWorker:
    """Wire a worker from configuration."""
    config = config or load_config()
    transport = transport or get_transport(config=config)
    repository = repository or get_repository(config=config)

    publisher = StatusPublisher(
        transport, topic=config.queues.manager, mode=config.kitchen.publish_mode
    )
    saga = OrderFulfillmentSaga(
        repository=repository,
        selector=RecipeSelector(RecipeCatalog(repository)),
        inventory=InventoryClient(
            transport,
            topic=config.queues.warehouse,
            timeout=config.kitchen.inventory_timeout,
        ),
        publisher=publisher,
        preparation_seconds=config.kitchen.preparation_seconds,
    )
    return KitchenWorker(transport, saga, topic=config.queues.kitchen, publisher=publisher)
