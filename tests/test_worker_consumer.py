"""WorkflowConsumer のユニットテスト"""

import asyncio
import json

import pytest
from rxflow_events import TOPIC_DEAD_LETTER_QUEUE, EventEnvelope, create_event
from rxflow_messaging import (
    ConsumedMessage,
    ConsumerConfig,
    InMemoryBroker,
    KafkaEventConsumer,
    MessagingError,
    MessagingErrorCodes,
)
from rxflow_worker import (
    NO_HANDLER_REASON,
    ConsumerState,
    Handler,
    HandlerError,
    HandlerErrorCodes,
    HandlerRegistry,
    PollMode,
    ProducerDeadLetterSink,
    WorkerConfig,
    WorkerError,
    WorkerErrorCodes,
    WorkflowConsumer,
)

FAST = WorkerConfig(poll_timeout_seconds=0.02, retry_backoff_seconds=0.01)


class RecordingHandler(Handler):
    def __init__(self, topic: str, fail: bool = False) -> None:
        self._topic = topic
        self._fail = fail
        self.seen: list[ConsumedMessage] = []

    def topic(self) -> str:
        return self._topic

    async def handle(self, message: ConsumedMessage) -> None:
        self.seen.append(message)
        if self._fail:
            raise HandlerError(code=HandlerErrorCodes.STORE_FAILED, message="store down")


class DecodingHandler(Handler):
    def __init__(self, topic: str) -> None:
        self._topic = topic
        self.decoded: list[EventEnvelope] = []

    def topic(self) -> str:
        return self._topic

    async def handle(self, message: ConsumedMessage) -> None:
        self.decoded.append(EventEnvelope.from_json(message.value))


def _worker(
    broker: InMemoryBroker, handlers: list[Handler], config: WorkerConfig = FAST
) -> WorkflowConsumer:
    return WorkflowConsumer(
        broker.consumer(),
        HandlerRegistry(handlers),
        ProducerDeadLetterSink(broker.producer()),
        config,
    )


async def _run_until(worker: WorkflowConsumer, condition, timeout: float = 2.0) -> None:
    task = asyncio.create_task(worker.start())
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            break
        await asyncio.sleep(0.01)
    worker.stop()
    await asyncio.wait_for(task, timeout)


def test_worker_config_validation() -> None:
    """不正な設定値は ValueError、文字列の poll_mode は変換されること。"""
    assert WorkerConfig(poll_mode="batch").poll_mode is PollMode.BATCH
    with pytest.raises(ValueError):
        WorkerConfig(poll_timeout_seconds=0)
    with pytest.raises(ValueError):
        WorkerConfig(batch_size=0)
    with pytest.raises(ValueError):
        WorkerConfig(poll_mode="stream")


async def test_process_message_success_commits(broker: InMemoryBroker, make_message) -> None:
    """成功時は True を返しオフセットをコミットすること。"""
    handler = RecordingHandler("intake.received")
    worker = _worker(broker, [handler])
    message = make_message("intake.received", offset=4)

    assert await worker.process_message(message)
    assert handler.seen == [message]
    assert worker._consumer.committed == {("intake.received", 0): 5}
    assert broker.messages(TOPIC_DEAD_LETTER_QUEUE) == []


async def test_unroutable_message_goes_to_dead_letter(
    broker: InMemoryBroker, make_message
) -> None:
    """ハンドラ未登録のトピックはデッドレターに送られコミットされること。"""
    worker = _worker(broker, [RecordingHandler("intake.received")])
    message = make_message("unknown.topic", offset=0)

    assert not await worker.process_message(message)
    dead = broker.messages(TOPIC_DEAD_LETTER_QUEUE)
    assert len(dead) == 1
    assert json.loads(dead[0].value)["error"] == NO_HANDLER_REASON
    assert worker._consumer.committed == {("unknown.topic", 0): 1}


async def test_handler_failure_goes_to_dead_letter(broker: InMemoryBroker, make_message) -> None:
    """ハンドラ失敗時はエラー内容付きでデッドレターに送られ、コミットされること。"""
    worker = _worker(broker, [RecordingHandler("intake.received", fail=True)])
    envelope = create_event("c9", "rx_9")
    message = make_message("intake.received", envelope=envelope, offset=2)

    assert not await worker.process_message(message)
    dead = broker.messages(TOPIC_DEAD_LETTER_QUEUE)
    assert len(dead) == 1
    record = json.loads(dead[0].value)
    assert "store down" in record["error"]
    assert record["correlation_id"] == "c9"
    assert record["original_value"] == envelope.to_json().decode()
    assert worker._consumer.committed == {("intake.received", 0): 3}


async def test_commit_failure_is_logged_not_raised(broker: InMemoryBroker, make_message, mocker) -> None:
    """コミット失敗は記録のみで送出しないこと。"""
    worker = _worker(broker, [RecordingHandler("intake.received")])
    mocker.patch.object(
        worker._consumer,
        "commit",
        side_effect=MessagingError(MessagingErrorCodes.COMMIT_FAILED, "rebalance"),
    )
    assert await worker.process_message(make_message("intake.received"))


async def test_single_mode_processes_in_order(broker: InMemoryBroker) -> None:
    """単発モードで到着順に処理すること。"""
    handler = RecordingHandler("intake.received")
    for i in range(3):
        broker.append("intake.received", create_event("c1", f"rx_{i}").to_json())
    worker = _worker(broker, [handler])

    await _run_until(worker, lambda: len(handler.seen) == 3)

    assert [m.offset for m in handler.seen] == [0, 1, 2]
    assert worker.state is ConsumerState.STOPPED
    assert worker._consumer.closed


async def test_batch_mode_processes_partial_batch(broker: InMemoryBroker) -> None:
    """バッチモードで上限未満のバッチも処理されること。"""
    handler = RecordingHandler("intake.received")
    for i in range(3):
        broker.append("intake.received", create_event("c1", f"rx_{i}").to_json())
    config = WorkerConfig(
        poll_mode=PollMode.BATCH,
        poll_timeout_seconds=0.02,
        batch_size=10,
        batch_interval_seconds=0.05,
    )
    worker = _worker(broker, [handler], config)

    await _run_until(worker, lambda: len(handler.seen) == 3)
    assert [m.offset for m in handler.seen] == [0, 1, 2]


async def test_stop_interrupts_batch_interval(broker: InMemoryBroker) -> None:
    """バッチ間隔の待機中でも停止要求ですぐ終わること。"""
    config = WorkerConfig(
        poll_mode=PollMode.BATCH, poll_timeout_seconds=0.01, batch_interval_seconds=30
    )
    worker = _worker(broker, [RecordingHandler("intake.received")], config)
    task = asyncio.create_task(worker.start())
    await asyncio.sleep(0.05)
    worker.stop()
    await asyncio.wait_for(task, 1.0)
    assert worker.state is ConsumerState.STOPPED


async def test_external_stop_event(broker: InMemoryBroker) -> None:
    """外部の停止イベントで終了すること。"""
    worker = _worker(broker, [RecordingHandler("intake.received")])
    stop_event = asyncio.Event()
    task = asyncio.create_task(worker.start(stop_event))
    await asyncio.sleep(0.03)
    assert worker.state is ConsumerState.RUNNING
    stop_event.set()
    await asyncio.wait_for(task, 1.0)
    assert worker.stopping


async def test_empty_registry_stops_immediately(broker: InMemoryBroker) -> None:
    """ハンドラがなければ購読せずに停止状態になること。"""
    worker = _worker(broker, [])
    await asyncio.wait_for(worker.start(), 1.0)
    assert worker.state is ConsumerState.STOPPED


async def test_subscribe_failure_raises_worker_error(broker: InMemoryBroker, mocker) -> None:
    """購読失敗は WorkerError(SUBSCRIBE_FAILED)。"""
    worker = _worker(broker, [RecordingHandler("intake.received")])
    mocker.patch.object(
        worker._consumer,
        "subscribe",
        side_effect=MessagingError(MessagingErrorCodes.CONNECTION_FAILED, "no brokers"),
    )
    with pytest.raises(WorkerError) as exc_info:
        await worker.start()
    assert exc_info.value.code == WorkerErrorCodes.SUBSCRIBE_FAILED
    assert worker.state is ConsumerState.STOPPED


async def test_poll_errors_back_off_and_continue(broker: InMemoryBroker, mocker) -> None:
    """受信エラー後もバックオフしてループを続けること。"""
    handler = RecordingHandler("intake.received")
    worker = _worker(broker, [handler])
    consumer = worker._consumer
    original = consumer.receive
    calls = {"n": 0}

    def flaky(timeout_seconds: float = 1.0):
        calls["n"] += 1
        if calls["n"] <= 2:
            raise MessagingError(MessagingErrorCodes.RECEIVE_FAILED, "broker unavailable")
        return original(timeout_seconds)

    mocker.patch.object(consumer, "receive", side_effect=flaky)
    broker.append("intake.received", create_event("c1", "rx_1").to_json())

    await _run_until(worker, lambda: len(handler.seen) == 1)
    assert calls["n"] >= 3
    assert len(handler.seen) == 1


@pytest.mark.parametrize("mode", [PollMode.SINGLE, PollMode.BATCH])
async def test_malformed_values_go_to_dead_letter_and_loop_continues(
    broker: InMemoryBroker, mode: PollMode
) -> None:
    """壊れた値はそれぞれデッドレターに送られ、後続のメッセージは処理されること。"""
    handler = DecodingHandler("intake.received")
    broker.append("intake.received", b"[" * 200_000 + b"]" * 200_000)
    broker.append("intake.received", b"\xff\xfe")
    broker.append("intake.received", create_event("c1", "rx_1").to_json())
    config = WorkerConfig(poll_mode=mode, poll_timeout_seconds=0.02, batch_interval_seconds=0.01)
    worker = _worker(broker, [handler], config)

    await _run_until(worker, lambda: len(handler.decoded) == 1)

    assert [e.subject_id for e in handler.decoded] == ["rx_1"]
    records = [json.loads(m.value) for m in broker.messages(TOPIC_DEAD_LETTER_QUEUE)]
    assert [r["offset"] for r in records] == [0, 1]
    assert all("DECODE_FAILED" in r["error"] for r in records)
    assert records[1]["original_value_encoding"] == "base64"
    assert worker._consumer.committed == {("intake.received", 0): 3}


async def test_kafka_batch_with_undecodable_header_keeps_running(
    broker: InMemoryBroker, mocker
) -> None:
    """UTF-8 でないヘッダー値を持つメッセージでもバッチループが止まらないこと。"""
    msg = mocker.MagicMock()
    msg.error.return_value = None
    msg.topic.return_value = "intake.received"
    msg.partition.return_value = 0
    msg.offset.return_value = 0
    msg.value.return_value = create_event("c1", "rx_1").to_json()
    msg.key.return_value = b"rx_1"
    msg.headers.return_value = [("X-Correlation-Id", b"\xff\xfe")]
    batches = [[msg]]
    mock_consumer = mocker.MagicMock()
    mock_consumer.consume.side_effect = lambda **kwargs: batches.pop() if batches else []
    mocker.patch("confluent_kafka.Consumer", return_value=mock_consumer)
    mocker.patch("confluent_kafka.TopicPartition")

    handler = RecordingHandler("intake.received")
    worker = WorkflowConsumer(
        KafkaEventConsumer(ConsumerConfig(brokers=["localhost:9092"], group_id="g")),
        HandlerRegistry([handler]),
        ProducerDeadLetterSink(broker.producer()),
        WorkerConfig(
            poll_mode=PollMode.BATCH, poll_timeout_seconds=0.02, batch_interval_seconds=0.01
        ),
    )

    await _run_until(worker, lambda: len(handler.seen) == 1)

    assert handler.seen[0].headers == {"X-Correlation-Id": "\ufffd\ufffd"}
    assert worker.state is ConsumerState.STOPPED
    mock_consumer.commit.assert_called_once()
    mock_consumer.close.assert_called_once()
