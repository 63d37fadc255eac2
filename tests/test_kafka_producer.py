"""KafkaEventProducer のユニットテスト"""

import pytest
from rxflow_messaging import (
    KafkaEventProducer,
    MessagingError,
    MessagingErrorCodes,
    ProducerConfig,
    parse_brokers,
)


def _producer(mocker, flush_remaining: int = 0):
    mock_producer = mocker.MagicMock()
    mock_producer.flush.return_value = flush_remaining
    mocker.patch("confluent_kafka.Producer", return_value=mock_producer)
    return mock_producer, KafkaEventProducer(
        ProducerConfig(brokers=["localhost:9092"], timeout_seconds=2.0)
    )


def test_publish_produces_and_flushes(mocker) -> None:
    """キーとヘッダーを付けて発行し、配信完了まで待つこと。"""
    mock_producer, producer = _producer(mocker)
    producer.publish(
        "intake.received", b"{}", key="rx_1", headers={"X-Correlation-Id": "c1"}
    )
    mock_producer.produce.assert_called_once_with(
        topic="intake.received",
        value=b"{}",
        key=b"rx_1",
        headers=[("X-Correlation-Id", b"c1")],
    )
    mock_producer.flush.assert_called_once_with(timeout=2.0)


def test_publish_empty_topic_raises(mocker) -> None:
    """空のトピック名は ValueError。"""
    _, producer = _producer(mocker)
    with pytest.raises(ValueError):
        producer.publish("", b"{}")


def test_publish_error_raises_messaging_error(mocker) -> None:
    """produce の例外は PUBLISH_FAILED に変換されること。"""
    mock_producer, producer = _producer(mocker)
    mock_producer.produce.side_effect = BufferError("queue full")
    with pytest.raises(MessagingError) as exc_info:
        producer.publish("intake.received", b"{}")
    assert exc_info.value.code == MessagingErrorCodes.PUBLISH_FAILED
    assert isinstance(exc_info.value.__cause__, BufferError)


def test_publish_flush_timeout_raises(mocker) -> None:
    """フラッシュ後も未配信が残る場合は PUBLISH_FAILED。"""
    _, producer = _producer(mocker, flush_remaining=1)
    with pytest.raises(MessagingError) as exc_info:
        producer.publish("intake.received", b"{}")
    assert exc_info.value.code == MessagingErrorCodes.PUBLISH_FAILED


async def test_publish_async(mocker) -> None:
    """非同期発行が同期発行を呼ぶこと。"""
    mock_producer, producer = _producer(mocker)
    await producer.publish_async("payment.completed", b"{}", key=b"rx_1")
    mock_producer.produce.assert_called_once()


def test_context_manager_flushes_on_exit(mocker) -> None:
    """with ブロック終了時にフラッシュされること。"""
    mock_producer, producer = _producer(mocker)
    with producer as p:
        p.publish("intake.received", b"{}")
    assert mock_producer.flush.call_count == 2


def test_parse_brokers() -> None:
    """カンマ区切りのブローカー文字列を分割できること。"""
    assert parse_brokers("k1:9092, k2:9092,,") == ["k1:9092", "k2:9092"]
    assert parse_brokers("") == []
