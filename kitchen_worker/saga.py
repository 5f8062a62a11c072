"""Order fulfillment saga.

One run handles one batch of dispatched orders:

1. open a transaction on the order store
2. pick a recipe for every order and sum up the ingredients they need
3. announce every order as ``IN_PROGRESS``
4. insert all order rows in one statement
5. reserve the summed ingredients with a single warehouse call
6. wait out the preparation, commit and then announce ``COMPLETED``

Any failure rolls the transaction back and announces every order of the
batch as ``FAILED``. Status events are not part of the transaction: the
``IN_PROGRESS`` event is visible even when the batch later fails, so
consumers have to treat events as hints and the store as the record.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Protocol, Sequence, Tuple

from .constants import DEFAULT_PREPARATION_SECONDS
from .contracts import (
    AssignedOrder,
    DispatchedOrder,
    IngredientsRequest,
    IngredientsResponse,
    OrderRef,
    OrderStatus,
    OrderStatusChange,
    Recipe,
)
from .exceptions import InventoryDenied
from .persistence import KitchenRepository, OrderTransaction
from .publisher import StatusPublisher
from .recipes import RecipeSelector

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Inventory(Protocol):
    async def reserve(self, request: IngredientsRequest) -> IngredientsResponse: ...


def add_ingredients(
    totals: Dict[str, float], ingredients: Mapping[str, float]
) -> Dict[str, float]:
    """Fold one recipe's quantities into ``totals`` in place and return it."""
    for name, quantity in ingredients.items():
        totals[name] = totals.get(name, 0) + quantity
    return totals


def aggregate_ingredients(
    assignments: Iterable[Tuple[AssignedOrder, Recipe]],
) -> IngredientsRequest:
    """Sum the ingredients of every assigned order into one request."""
    totals: Dict[str, float] = {}
    refs: List[OrderRef] = []
    for order, recipe in assignments:
        add_ingredients(totals, recipe.ingredients)
        refs.append(OrderRef(id=order.id))
    return IngredientsRequest(ingredients=totals, orders=refs)


class OrderFulfillmentSaga:
    """Fulfill batches of dispatched orders."""

    def __init__(
        self,
        repository: KitchenRepository,
        selector: RecipeSelector,
        inventory: Inventory,
        publisher: StatusPublisher,
        preparation_seconds: float = DEFAULT_PREPARATION_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._selector = selector
        self._inventory = inventory
        self._publisher = publisher
        self._preparation_seconds = preparation_seconds
        self._sleep = sleep

    async def fulfill(self, batch: Sequence[DispatchedOrder]) -> None:
        """Run the saga for ``batch``.

        Never raises for a failed batch: the outcome is reported through the
        status events and the committed rows.
        """
        if not batch:
            logger.warning("Received an empty batch of orders, nothing to do")
            return

        order_ids = [order.id for order in batch]
        logger.info(f"Received orders for processing: {order_ids}")

        try:
            async with self._repository.transaction() as tx:
                try:
                    await self._run(batch, tx)
                except Exception:
                    if tx.is_active:
                        await tx.rollback()
                    raise
        except Exception:
            logger.exception(f"Fulfillment failed for orders {order_ids}")
            await self._publisher.publish(
                [OrderStatusChange.failed(order_id) for order_id in order_ids]
            )

    async def _run(self, batch: Sequence[DispatchedOrder], tx: OrderTransaction) -> None:
        assignments: List[Tuple[AssignedOrder, Recipe]] = []
        for order in batch:
            recipe = await self._selector.pick_random()
            logger.info(f"Random recipe selected for order {order.id}: {recipe.name}")
            assignments.append((AssignedOrder.from_dispatched(order, recipe), recipe))

        in_progress = [order for order, _ in assignments]
        request = aggregate_ingredients(assignments)

        await self._publisher.publish([o.to_status_change() for o in in_progress])

        await tx.insert_orders([o.to_persisted() for o in in_progress])

        logger.info(f"Requesting ingredients in bulk: {request.to_wire()}")
        response = await self._inventory.reserve(request)
        if not response.success:
            raise InventoryDenied(
                "Warehouse refused the ingredients request", order_ids=request.order_ids
            )

        await self._prepare(in_progress)
        await tx.commit()
        await self._announce_completed(in_progress)
        logger.info(f"Completed processing of orders {request.order_ids}")

    async def _prepare(self, orders: Sequence[AssignedOrder]) -> None:
        logger.info(f"Preparing orders {[o.id for o in orders]}")
        await self._sleep(self._preparation_seconds)

    async def _announce_completed(self, orders: Sequence[AssignedOrder]) -> None:
        # only after commit, so a completed order always has its row
        completed = [o.with_status(OrderStatus.COMPLETED) for o in orders]
        await self._publisher.publish([o.to_status_change() for o in completed])
