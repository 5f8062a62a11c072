"""Client for the warehouse service that reserves ingredients."""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from .constants import DEFAULT_INVENTORY_TIMEOUT, REQUEST_INGREDIENTS, WAREHOUSE_QUEUE
from .contracts import IngredientsRequest, IngredientsResponse, KitchenMessage
from .exceptions import InventoryUnreachable
from .transports import BaseTransport

logger = logging.getLogger(__name__)


class InventoryClient:
    """Ask the warehouse to reserve the ingredients for a batch.

    A reply of ``{"success": false}`` is returned as-is; it is up to the
    caller to treat it as a refusal. Anything that prevents getting a reply
    at all raises :class:`InventoryUnreachable`.
    """

    def __init__(
        self,
        transport: BaseTransport,
        topic: str = WAREHOUSE_QUEUE,
        timeout: float = DEFAULT_INVENTORY_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._topic = topic
        self._timeout = timeout

    async def reserve(self, request: IngredientsRequest) -> IngredientsResponse:
        logger.info(f"Asking the warehouse for ingredients: {request.ingredients}")
        message = KitchenMessage(pattern=REQUEST_INGREDIENTS, data=request.to_wire())
        try:
            reply = await self._transport.request(self._topic, message, self._timeout)
        except asyncio.TimeoutError as e:
            raise InventoryUnreachable(
                f"Warehouse did not answer within {self._timeout}s",
                order_ids=request.order_ids,
            ) from e
        except Exception as e:
            raise InventoryUnreachable(
                f"Communication error with the warehouse: {e}",
                order_ids=request.order_ids,
            ) from e

        try:
            return IngredientsResponse.model_validate(reply.data)
        except ValidationError as e:
            raise InventoryUnreachable(
                f"Unreadable warehouse reply: {reply.data!r}",
                order_ids=request.order_ids,
            ) from e
