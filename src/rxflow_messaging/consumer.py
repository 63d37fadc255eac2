"""イベントコンシューマー"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import structlog

from .exceptions import MessagingError, MessagingErrorCodes
from .models import ConsumedMessage, ConsumerConfig

logger = structlog.get_logger(__name__)


class EventConsumer(ABC):
    """イベントコンシューマー抽象基底クラス。"""

    @abstractmethod
    def subscribe(self, topics: list[str]) -> None:
        """トピックを購読する。"""
        ...

    @abstractmethod
    def receive(self, timeout_seconds: float = 1.0) -> ConsumedMessage | None:
        """メッセージを受信する（同期）。タイムアウト時は None を返す。"""
        ...

    @abstractmethod
    def receive_batch(
        self, timeout_seconds: float = 1.0, max_messages: int = 10
    ) -> list[ConsumedMessage]:
        """最大 max_messages 件を受信する（同期）。

        timeout_seconds はバッチ全体の上限。タイムアウトした時点で
        受信済みのメッセージだけを返す（エラーではない）。
        """
        ...

    @abstractmethod
    def commit(self, message: ConsumedMessage) -> None:
        """オフセットをコミットする。"""
        ...

    @abstractmethod
    def close(self) -> None:
        """コンシューマーを閉じる。"""
        ...

    async def receive_async(self, timeout_seconds: float = 1.0) -> ConsumedMessage | None:
        """非同期でメッセージを受信する（ブロッキング受信をエグゼキューターで実行）。"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.receive, timeout_seconds)

    async def receive_batch_async(
        self, timeout_seconds: float = 1.0, max_messages: int = 10
    ) -> list[ConsumedMessage]:
        """非同期でバッチ受信する。"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.receive_batch, timeout_seconds, max_messages
        )


def _to_consumed_message(msg: Any) -> ConsumedMessage:  # noqa: ANN401
    headers: dict[str, str] = {}
    if msg.headers():
        # ヘッダー値が UTF-8 でなくてもメッセージ本体は失わない
        headers = {
            k: v.decode("utf-8", errors="replace")
            for k, v in msg.headers()
            if v is not None
        }
    return ConsumedMessage(
        topic=msg.topic(),
        partition=msg.partition(),
        offset=msg.offset(),
        value=msg.value() or b"",
        key=msg.key(),
        headers=headers,
    )


class KafkaEventConsumer(EventConsumer):
    """confluent-kafka を使ったイベントコンシューマー。

    パーティション割り当てはコンシューマーグループ経由でブローカーに委ねる。
    """

    def __init__(self, config: ConsumerConfig) -> None:
        self._config = config
        self._consumer: Any = None
        self._subscribed = False

    def _get_consumer(self) -> Any:  # noqa: ANN401
        if self._consumer is None:
            from confluent_kafka import Consumer

            self._consumer = Consumer(self._config.to_confluent_config())
        return self._consumer

    def _ensure_subscribed(self) -> None:
        if not self._subscribed:
            raise MessagingError(
                code=MessagingErrorCodes.NOT_SUBSCRIBED,
                message="consumer is not subscribed to any topics; call subscribe() first",
            )

    def subscribe(self, topics: list[str]) -> None:
        """トピックを購読する。"""
        try:
            self._get_consumer().subscribe(topics)
        except Exception as e:
            raise MessagingError(
                code=MessagingErrorCodes.CONNECTION_FAILED,
                message=f"Failed to subscribe to {topics}: {e}",
                cause=e,
            ) from e
        self._subscribed = True

    def receive(self, timeout_seconds: float = 1.0) -> ConsumedMessage | None:
        """Kafka からメッセージを受信する。"""
        self._ensure_subscribed()
        try:
            msg = self._get_consumer().poll(timeout=timeout_seconds)
            if msg is None:
                return None
            if msg.error():
                raise MessagingError(
                    code=MessagingErrorCodes.RECEIVE_FAILED,
                    message=f"Kafka error: {msg.error()}",
                )
            return _to_consumed_message(msg)
        except MessagingError:
            raise
        except Exception as e:
            raise MessagingError(
                code=MessagingErrorCodes.RECEIVE_FAILED,
                message=f"Failed to receive message: {e}",
                cause=e,
            ) from e

    def receive_batch(
        self, timeout_seconds: float = 1.0, max_messages: int = 10
    ) -> list[ConsumedMessage]:
        """Kafka から最大 max_messages 件をまとめて受信する。"""
        self._ensure_subscribed()
        try:
            msgs = self._get_consumer().consume(
                num_messages=max_messages, timeout=timeout_seconds
            )
        except Exception as e:
            raise MessagingError(
                code=MessagingErrorCodes.RECEIVE_FAILED,
                message=f"Failed to receive batch: {e}",
                cause=e,
            ) from e
        batch: list[ConsumedMessage] = []
        for msg in msgs or []:
            if msg.error():
                # 受信済みの他メッセージを失わないよう、エラー要素だけ読み飛ばす
                logger.warning("kafka_batch_message_error", error=str(msg.error()))
                continue
            try:
                batch.append(_to_consumed_message(msg))
            except Exception as e:
                logger.error(
                    "kafka_batch_message_unreadable",
                    topic=msg.topic(),
                    offset=msg.offset(),
                    error=str(e),
                )
        return batch

    def commit(self, message: ConsumedMessage) -> None:
        """オフセットをコミットする（非同期）。"""
        from confluent_kafka import TopicPartition

        try:
            consumer = self._get_consumer()
            tp = TopicPartition(message.topic, message.partition, message.offset + 1)
            consumer.commit(offsets=[tp], asynchronous=True)
        except Exception as e:
            raise MessagingError(
                code=MessagingErrorCodes.COMMIT_FAILED,
                message=f"Failed to commit offset {message.offset} on {message.topic}: {e}",
                cause=e,
            ) from e

    def close(self) -> None:
        """コンシューマーを閉じる。"""
        if self._consumer is not None:
            self._consumer.close()
            self._consumer = None
        self._subscribed = False
