"""デッドレターキューへの転送"""

from __future__ import annotations

import base64
import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from rxflow_events import (
    TOPIC_DEAD_LETTER_QUEUE,
    X_CORRELATION_ID,
    extract_correlation_id,
    generate_event_id,
)
from rxflow_messaging import ConsumedMessage, EventProducer

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DeadLetterRecord:
    """処理できなかったメッセージの記録。書き込み専用で、自動再処理はしない。"""

    original_topic: str
    original_key: str
    original_value: str
    error: str
    partition: int
    offset: int
    original_value_encoding: str = "utf-8"  # "utf-8" or "base64"
    correlation_id: str = ""
    event_id: str = field(default_factory=generate_event_id)
    failed_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @classmethod
    def from_message(cls, message: ConsumedMessage, error: str) -> DeadLetterRecord:
        """元メッセージを変更せずに記録を作る。UTF-8 でない値は base64 で保持する。"""
        try:
            value = message.value.decode("utf-8")
            encoding = "utf-8"
        except UnicodeDecodeError:
            value = base64.b64encode(message.value).decode("ascii")
            encoding = "base64"
        return cls(
            original_topic=message.topic,
            original_key=message.key_str,
            original_value=value,
            original_value_encoding=encoding,
            error=error,
            partition=message.partition,
            offset=message.offset,
            correlation_id=extract_correlation_id(message.value),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")


class DeadLetterSink(ABC):
    """デッドレターの送り先。"""

    @abstractmethod
    async def publish_dead_letter(self, message: ConsumedMessage, reason: str) -> bool:
        """メッセージをデッドレターとして記録する。成功時 True。例外は送出しない。"""
        ...


class ProducerDeadLetterSink(DeadLetterSink):
    """EventProducer 経由で dead_letter_queue トピックに発行する。"""

    def __init__(self, producer: EventProducer, topic: str = TOPIC_DEAD_LETTER_QUEUE) -> None:
        self._producer = producer
        self._topic = topic

    @property
    def topic(self) -> str:
        return self._topic

    async def publish_dead_letter(self, message: ConsumedMessage, reason: str) -> bool:
        record = DeadLetterRecord.from_message(message, reason)
        try:
            await self._producer.publish_async(
                self._topic,
                record.to_json(),
                key=message.key,
                headers={X_CORRELATION_ID: record.correlation_id},
            )
        except Exception:
            logger.error(
                "dead_letter_publish_failed",
                original_topic=message.topic,
                partition=message.partition,
                offset=message.offset,
                reason=reason,
                exc_info=True,
            )
            return False
        logger.warning(
            "dead_letter_published",
            original_topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            reason=reason,
            dead_letter_event_id=record.event_id,
        )
        return True
