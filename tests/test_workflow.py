"""インメモリブローカー上でワークフロー全体を通すテスト"""

import asyncio

from rxflow_capacity import CapacityTracker
from rxflow_events import (
    TOPIC_DEAD_LETTER_QUEUE,
    TOPIC_INTAKE_RECEIVED,
    TOPIC_PAYMENT_COMPLETED,
    TOPIC_PAYMENT_LINK_CREATED,
    TOPIC_SHIPMENT_DELIVERED,
    TOPIC_VALIDATION_COMPLETED,
    X_CORRELATION_ID,
    EventEnvelope,
    create_event,
)
from rxflow_messaging import InMemoryBroker
from rxflow_stages import COLLECTION_PRESCRIPTIONS, InMemoryDocumentStore, build_stage_handlers
from rxflow_worker import (
    HandlerRegistry,
    ProducerDeadLetterSink,
    WorkerConfig,
    WorkflowConsumer,
)


def _worker(broker: InMemoryBroker, store: InMemoryDocumentStore, tracker: CapacityTracker) -> WorkflowConsumer:
    producer = broker.producer()
    return WorkflowConsumer(
        broker.consumer(),
        HandlerRegistry(build_stage_handlers(store, producer, tracker)),
        ProducerDeadLetterSink(producer),
        WorkerConfig(poll_timeout_seconds=0.02),
    )


async def _wait_for(condition, timeout: float = 3.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition() and asyncio.get_running_loop().time() < deadline:
        await asyncio.sleep(0.01)


async def test_intake_event_produces_one_validation_event(
    broker: InMemoryBroker, seeded_store, tracker
) -> None:
    """intake.received 1 件から同じ ID を引き継いだ validation.completed が 1 件発行されること。"""
    worker = _worker(broker, seeded_store, tracker)
    task = asyncio.create_task(worker.start())

    inbound = create_event("c1", "rx_1")
    broker.append(
        TOPIC_INTAKE_RECEIVED, inbound.to_json(), key="rx_1", headers={X_CORRELATION_ID: "c1"}
    )
    await _wait_for(lambda: broker.messages(TOPIC_VALIDATION_COMPLETED))
    await asyncio.sleep(0.05)
    worker.stop()
    await asyncio.wait_for(task, 2.0)

    validated = broker.messages(TOPIC_VALIDATION_COMPLETED)
    assert len(validated) == 1
    event = EventEnvelope.from_json(validated[0].value)
    assert event.subject_id == "rx_1"
    assert event.correlation_id == "c1"


async def test_full_workflow_reaches_delivery(
    broker: InMemoryBroker, seeded_store, tracker
) -> None:
    """支払い完了を外部から受け取り、配達完了まで進むこと。"""
    worker = _worker(broker, seeded_store, tracker)
    task = asyncio.create_task(worker.start())

    broker.append(TOPIC_INTAKE_RECEIVED, create_event("c1", "rx_1").to_json(), key="rx_1")
    await _wait_for(lambda: broker.messages(TOPIC_PAYMENT_LINK_CREATED))
    link = EventEnvelope.from_json(broker.messages(TOPIC_PAYMENT_LINK_CREATED)[0].value)

    # 決済プロバイダーからの完了通知
    paid = create_event(
        link.correlation_id,
        link.subject_id,
        {"amount": link.get("amount"), "status": "paid", "completed_at": "2026-01-03T00:00:00+00:00"},
    )
    broker.append(TOPIC_PAYMENT_COMPLETED, paid.to_json(), key="rx_1")
    await _wait_for(lambda: broker.messages(TOPIC_SHIPMENT_DELIVERED))
    worker.stop()
    await asyncio.wait_for(task, 2.0)

    delivered = broker.messages(TOPIC_SHIPMENT_DELIVERED)
    assert len(delivered) == 1
    assert EventEnvelope.from_json(delivered[0].value).correlation_id == "c1"
    assert broker.messages(TOPIC_DEAD_LETTER_QUEUE) == []

    prescription = await seeded_store.find_one(COLLECTION_PRESCRIPTIONS, {"_id": "rx_1"})
    assert prescription is not None
    assert prescription["status"] == "delivered"
    assert (await tracker.get("ph_1")).current_count == 1

    correlation_ids = {
        EventEnvelope.from_json(m.value).correlation_id
        for m in broker.messages()
        if m.topic != TOPIC_DEAD_LETTER_QUEUE
    }
    assert correlation_ids == {"c1"}


async def test_failed_message_does_not_block_partition(
    broker: InMemoryBroker, seeded_store, tracker
) -> None:
    """失敗したメッセージはデッドレターに送られ、後続のメッセージは処理されること。"""
    worker = _worker(broker, seeded_store, tracker)
    task = asyncio.create_task(worker.start())

    broker.append(TOPIC_INTAKE_RECEIVED, create_event("c0", "rx_missing").to_json())
    broker.append(TOPIC_INTAKE_RECEIVED, b"garbage")
    broker.append(TOPIC_INTAKE_RECEIVED, create_event("c1", "rx_1").to_json())
    await _wait_for(lambda: broker.messages(TOPIC_VALIDATION_COMPLETED))
    worker.stop()
    await asyncio.wait_for(task, 2.0)

    assert len(broker.messages(TOPIC_DEAD_LETTER_QUEUE)) == 2
    assert len(broker.messages(TOPIC_VALIDATION_COMPLETED)) == 1
