"""インメモリブローカー（テスト・ローカル実行用）"""

from __future__ import annotations

import threading
import time

from .consumer import EventConsumer
from .exceptions import MessagingError, MessagingErrorCodes
from .models import ConsumedMessage
from .producer import EventProducer, _encode_key


class InMemoryBroker:
    """テスト用インメモリブローカー。

    全トピックのメッセージを到着順に 1 本のログで保持する。パーティションは常に 0。
    """

    def __init__(self) -> None:
        self._log: list[ConsumedMessage] = []
        self._offsets: dict[str, int] = {}
        self._cond = threading.Condition()

    def append(
        self,
        topic: str,
        value: bytes,
        key: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> ConsumedMessage:
        """メッセージをログに追加する。"""
        with self._cond:
            offset = self._offsets.get(topic, 0)
            self._offsets[topic] = offset + 1
            message = ConsumedMessage(
                topic=topic,
                partition=0,
                offset=offset,
                value=value,
                key=_encode_key(key),
                headers=dict(headers or {}),
            )
            self._log.append(message)
            self._cond.notify_all()
            return message

    def messages(self, topic: str | None = None) -> list[ConsumedMessage]:
        """発行済みメッセージを返す。topic 指定時はそのトピックのみ。"""
        with self._cond:
            if topic is None:
                return list(self._log)
            return [m for m in self._log if m.topic == topic]

    def producer(self) -> InMemoryEventProducer:
        return InMemoryEventProducer(self)

    def consumer(self) -> InMemoryEventConsumer:
        return InMemoryEventConsumer(self)

    def _next(
        self, position: int, topics: frozenset[str]
    ) -> tuple[int, ConsumedMessage | None]:
        for index in range(position, len(self._log)):
            if self._log[index].topic in topics:
                return index + 1, self._log[index]
        return len(self._log), None


class InMemoryEventProducer(EventProducer):
    """InMemoryBroker に発行するプロデューサー。"""

    def __init__(self, broker: InMemoryBroker) -> None:
        self._broker = broker
        self.closed = False

    def publish(
        self,
        topic: str,
        value: bytes,
        key: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if self.closed:
            raise MessagingError(
                code=MessagingErrorCodes.PUBLISH_FAILED,
                message=f"Producer is closed; cannot publish to {topic}",
            )
        self._broker.append(topic, value, key=key, headers=headers)

    def close(self) -> None:
        self.closed = True


class InMemoryEventConsumer(EventConsumer):
    """InMemoryBroker から到着順に読み出すコンシューマー。"""

    def __init__(self, broker: InMemoryBroker) -> None:
        self._broker = broker
        self._topics: frozenset[str] = frozenset()
        self._position = 0
        self._subscribed = False
        self.committed: dict[tuple[str, int], int] = {}
        self.closed = False

    def subscribe(self, topics: list[str]) -> None:
        self._topics = frozenset(topics)
        self._subscribed = True

    def _ensure_subscribed(self) -> None:
        if not self._subscribed:
            raise MessagingError(
                code=MessagingErrorCodes.NOT_SUBSCRIBED,
                message="consumer is not subscribed to any topics; call subscribe() first",
            )

    def receive(self, timeout_seconds: float = 1.0) -> ConsumedMessage | None:
        self._ensure_subscribed()
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        with self._broker._cond:
            while True:
                self._position, message = self._broker._next(self._position, self._topics)
                if message is not None:
                    return message
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._broker._cond.wait(timeout=remaining)

    def receive_batch(
        self, timeout_seconds: float = 1.0, max_messages: int = 10
    ) -> list[ConsumedMessage]:
        """最初の 1 件を最大 timeout_seconds 待ち、その後は到着済みの分だけ返す。"""
        self._ensure_subscribed()
        batch: list[ConsumedMessage] = []
        if max_messages <= 0:
            return batch
        first = self.receive(timeout_seconds)
        if first is None:
            return batch
        batch.append(first)
        with self._broker._cond:
            while len(batch) < max_messages:
                self._position, message = self._broker._next(self._position, self._topics)
                if message is None:
                    break
                batch.append(message)
        return batch

    def commit(self, message: ConsumedMessage) -> None:
        self.committed[(message.topic, message.partition)] = message.offset + 1

    def close(self) -> None:
        self._subscribed = False
        self.closed = True
