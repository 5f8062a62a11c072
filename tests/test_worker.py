"""Kitchen worker message handling tests."""

import pytest

from kitchen_worker.contracts import KitchenMessage
from kitchen_worker.worker import KitchenWorker


class RecordingSaga:
    def __init__(self):
        self.batches = []

    async def fulfill(self, batch):
        self.batches.append(batch)


async def _deliver(transport, message):
    await transport.publish("kitchen_queue", message)
    async for raw, received in transport.subscribe("kitchen_queue"):
        return raw, received


@pytest.mark.asyncio
async def test_handle_batch_message(transport):
    saga = RecordingSaga()
    worker = KitchenWorker(transport, saga, topic="kitchen_queue")
    raw, message = await _deliver(
        transport,
        KitchenMessage(
            pattern="order_dispatched",
            data=[{"id": "1", "customerId": "10"}, {"id": "2", "customerId": "20"}],
        ),
    )

    await worker.handle(raw, message)

    assert [[o.id for o in batch] for batch in saga.batches] == [["1", "2"]]
    assert transport.rejected == []


@pytest.mark.asyncio
async def test_handle_single_order_message(transport):
    saga = RecordingSaga()
    worker = KitchenWorker(transport, saga, topic="kitchen_queue")
    raw, message = await _deliver(
        transport,
        KitchenMessage(pattern="order_dispatched", data={"id": "9", "customerId": "90"}),
    )

    await worker.handle(raw, message)

    assert [[o.id for o in batch] for batch in saga.batches] == [["9"]]


@pytest.mark.asyncio
async def test_handle_rejects_unknown_pattern(transport):
    saga = RecordingSaga()
    worker = KitchenWorker(transport, saga, topic="kitchen_queue")
    raw, message = await _deliver(transport, KitchenMessage(pattern="order_cancelled", data={}))

    await worker.handle(raw, message)

    assert saga.batches == []
    assert len(transport.rejected) == 1
    assert len(transport._queues["kitchen_queue"]) == 0


@pytest.mark.asyncio
async def test_handle_rejects_malformed_batch(transport):
    saga = RecordingSaga()
    worker = KitchenWorker(transport, saga, topic="kitchen_queue")
    raw, message = await _deliver(
        transport, KitchenMessage(pattern="order_dispatched", data=[{"customerId": "10"}])
    )

    await worker.handle(raw, message)

    assert saga.batches == []
    assert len(transport.rejected) == 1


@pytest.mark.asyncio
async def test_start_consumes_until_lifespan(transport):
    saga = RecordingSaga()
    worker = KitchenWorker(transport, saga, topic="kitchen_queue")
    for order_id in ("1", "2"):
        await transport.publish(
            "kitchen_queue",
            KitchenMessage(pattern="order_dispatched", data={"id": order_id, "customerId": "c"}),
        )

    await worker.start(lifespan=0.2)

    assert [[o.id for o in batch] for batch in saga.batches] == [["1"], ["2"]]


@pytest.mark.asyncio
async def test_handle_acks_empty_batch_without_saga(transport):
    saga = RecordingSaga()
    worker = KitchenWorker(transport, saga, topic="kitchen_queue")
    raw, message = await _deliver(transport, KitchenMessage(pattern="order_dispatched", data=[]))

    await worker.handle(raw, message)

    assert saga.batches == []
    assert transport.rejected == []
    assert len(transport._queues["kitchen_queue"]) == 0
