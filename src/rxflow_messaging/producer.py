"""イベントプロデューサー"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from .exceptions import MessagingError, MessagingErrorCodes
from .models import ProducerConfig


def _encode_key(key: str | bytes | None) -> bytes | None:
    if key is None or isinstance(key, bytes):
        return key
    return key.encode("utf-8")


class EventProducer(ABC):
    """イベントプロデューサー抽象基底クラス。"""

    @abstractmethod
    def publish(
        self,
        topic: str,
        value: bytes,
        key: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """イベントを発行する（同期）。key はパーティションキー。"""
        ...

    @abstractmethod
    def close(self) -> None:
        """プロデューサーを閉じる。"""
        ...

    async def publish_async(
        self,
        topic: str,
        value: bytes,
        key: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """非同期でイベントを発行する（実装は同期を実行）。"""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.publish, topic, value, key, headers)

    def __enter__(self) -> EventProducer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class KafkaEventProducer(EventProducer):
    """confluent-kafka を使ったイベントプロデューサー。"""

    def __init__(self, config: ProducerConfig) -> None:
        self._config = config
        self._producer: Any = None

    def _get_producer(self) -> Any:  # noqa: ANN401
        if self._producer is None:
            from confluent_kafka import Producer

            self._producer = Producer(self._config.to_confluent_config())
        return self._producer

    def publish(
        self,
        topic: str,
        value: bytes,
        key: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Kafka にイベントを発行し、配信完了まで待つ。"""
        if not topic:
            raise ValueError("topic cannot be empty")
        try:
            producer = self._get_producer()
            producer.produce(
                topic=topic,
                value=value,
                key=_encode_key(key),
                headers=[(k, v.encode()) for k, v in (headers or {}).items()],
            )
            remaining = producer.flush(timeout=self._config.timeout_seconds)
        except Exception as e:
            raise MessagingError(
                code=MessagingErrorCodes.PUBLISH_FAILED,
                message=f"Failed to publish event to {topic}: {e}",
                cause=e,
            ) from e
        if remaining:
            raise MessagingError(
                code=MessagingErrorCodes.PUBLISH_FAILED,
                message=f"Timed out delivering event to {topic}",
            )

    def close(self) -> None:
        """プロデューサーをフラッシュして閉じる。"""
        if self._producer is not None:
            self._producer.flush(timeout=self._config.timeout_seconds)
            self._producer = None
