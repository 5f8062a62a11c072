"""Shared fixtures for kitchen worker tests."""

import asyncio
import contextlib
import random

import pytest

from kitchen_worker.contracts import IngredientsRequest, IngredientsResponse, Recipe
from kitchen_worker.persistence import InMemoryKitchenRepository
from kitchen_worker.publisher import StatusPublisher
from kitchen_worker.recipes import RecipeCatalog, RecipeSelector
from kitchen_worker.saga import OrderFulfillmentSaga
from kitchen_worker.transports.inmemory import InMemoryTransport

SOUP = Recipe(id=1, name="Soup", ingredients={"tomato": 2})
SALAD = Recipe(id=2, name="Salad", ingredients={"lettuce": 1})


class StubInventory:
    """Inventory double that records requests and answers with ``success``."""

    def __init__(self, success: bool = True, error: Exception | None = None):
        self.success = success
        self.error = error
        self.requests: list[IngredientsRequest] = []
        self.on_reserve = None

    async def reserve(self, request: IngredientsRequest) -> IngredientsResponse:
        self.requests.append(request)
        if self.on_reserve is not None:
            self.on_reserve(request)
        if self.error is not None:
            raise self.error
        return IngredientsResponse(success=self.success)


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def repo():
    return InMemoryKitchenRepository(recipes=[SOUP, SALAD])


@pytest.fixture
def inventory():
    return StubInventory()


@pytest.fixture
def make_saga(transport):
    def _make(repository, inventory, preparation_seconds=0, sleep=None, seed=7):
        publisher = StatusPublisher(transport, topic="manager_queue")
        selector = RecipeSelector(RecipeCatalog(repository), rng=random.Random(seed))
        kwargs = {"sleep": sleep} if sleep is not None else {}
        return OrderFulfillmentSaga(
            repository,
            selector,
            inventory,
            publisher,
            preparation_seconds=preparation_seconds,
            **kwargs,
        )

    return _make


def _published_events(transport, topic="manager_queue"):
    return [message.data for _, message in transport._queues[topic]]


@pytest.fixture
def events():
    """Return a helper listing the data of every published status event."""
    return _published_events


@contextlib.asynccontextmanager
async def _serve_warehouse(transport, success=True, topic="warehouse_queue"):
    received = []

    async def _serve():
        async for raw, message in transport.subscribe(topic):
            received.append(message)
            await transport.ack(raw)
            await transport.reply(message, {"success": success})

    task = asyncio.create_task(_serve())
    try:
        yield received
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


@pytest.fixture
def warehouse():
    """Answer ingredient requests on ``warehouse_queue`` while in the context."""
    return _serve_warehouse
