"""Inventory client tests."""

import asyncio

import pytest

from kitchen_worker.contracts import IngredientsRequest, OrderRef
from kitchen_worker.exceptions import InventoryDenied, InventoryUnreachable
from kitchen_worker.inventory import InventoryClient
from kitchen_worker.transports.inmemory import InMemoryTransport

REQUEST = IngredientsRequest(
    ingredients={"tomato": 4, "lettuce": 1},
    orders=[OrderRef(id="1"), OrderRef(id="2")],
)


@pytest.mark.asyncio
async def test_reserve_success(warehouse):
    transport = InMemoryTransport()
    client = InventoryClient(transport, topic="warehouse_queue", timeout=2)

    async with warehouse(transport, success=True) as received:
        response = await client.reserve(REQUEST)

    assert response.success is True
    assert len(received) == 1
    assert received[0].pattern == "request_ingredients"
    assert received[0].data == {
        "ingredients": {"tomato": 4, "lettuce": 1},
        "orders": [{"id": "1"}, {"id": "2"}],
    }


@pytest.mark.asyncio
async def test_reserve_denied_is_returned(warehouse):
    transport = InMemoryTransport()
    client = InventoryClient(transport, topic="warehouse_queue", timeout=2)

    async with warehouse(transport, success=False):
        response = await client.reserve(REQUEST)

    assert response.success is False


@pytest.mark.asyncio
async def test_reserve_timeout_is_unreachable():
    transport = InMemoryTransport()
    client = InventoryClient(transport, topic="warehouse_queue", timeout=0.05)

    with pytest.raises(InventoryUnreachable) as exc_info:
        await client.reserve(REQUEST)

    assert exc_info.value.order_ids == ["1", "2"]
    assert not isinstance(exc_info.value, InventoryDenied)


@pytest.mark.asyncio
async def test_reserve_transport_error_is_unreachable():
    class DeadTransport(InMemoryTransport):
        async def request(self, topic, message, timeout):
            raise ConnectionRefusedError("no broker")

    client = InventoryClient(DeadTransport(), timeout=1)

    with pytest.raises(InventoryUnreachable) as exc_info:
        await client.reserve(REQUEST)
    assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)


@pytest.mark.asyncio
async def test_reserve_unreadable_reply():
    transport = InMemoryTransport()
    client = InventoryClient(transport, topic="warehouse_queue", timeout=2)

    async def answer_garbage():
        async for raw, message in transport.subscribe("warehouse_queue"):
            await transport.reply(message, {"ok": "maybe"})
            return

    responder = asyncio.create_task(answer_garbage())
    with pytest.raises(InventoryUnreachable):
        await client.reserve(REQUEST)
    await responder
