"""ステージハンドラ共通基底"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, ClassVar

import structlog
from rxflow_events import (
    X_CORRELATION_ID,
    EnvelopeError,
    EventEnvelope,
    StagePayload,
    create_event,
    parse_payload,
)
from rxflow_messaging import ConsumedMessage, EventProducer, MessagingError
from rxflow_worker import Handler, HandlerError, HandlerErrorCodes

from .store import COLLECTION_PRESCRIPTIONS, DocumentStore, StoreError

logger = structlog.get_logger(__name__)


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


class StageHandler(Handler):
    """ワークフローの 1 ステージ。

    受信エンベロープのデコードとペイロード検証、処方箋ドキュメントの
    読み書き、後続イベントの発行をまとめて提供する。後続イベントは常に
    受信したエンベロープの correlation_id と subject_id を引き継ぐ。
    """

    consumes: ClassVar[str]

    def __init__(self, store: DocumentStore, producer: EventProducer) -> None:
        self._store = store
        self._producer = producer

    def topic(self) -> str:
        return self.consumes

    async def handle(self, message: ConsumedMessage) -> None:
        try:
            envelope = EventEnvelope.from_json(message.value)
            payload = parse_payload(self.consumes, envelope)
        except EnvelopeError as e:
            raise HandlerError(
                code=HandlerErrorCodes.DECODE_FAILED,
                message=f"Failed to decode {self.consumes} event: {e}",
                cause=e,
            ) from e

        with structlog.contextvars.bound_contextvars(
            prescription_id=envelope.subject_id,
            stage=type(self).__name__,
        ):
            await self.process(envelope, payload)

    @abstractmethod
    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        """デコード済みイベントを処理する。"""
        ...

    async def load_prescription(self, prescription_id: str) -> dict[str, Any]:
        document = await self._call_store(
            "find prescription",
            self._store.find_one(COLLECTION_PRESCRIPTIONS, {"_id": prescription_id}),
        )
        if document is None:
            raise HandlerError(
                code=HandlerErrorCodes.NOT_FOUND,
                message=f"Prescription not found: {prescription_id}",
            )
        return document

    async def update_prescription(self, prescription_id: str, changes: Mapping[str, Any]) -> None:
        updated = await self._call_store(
            "update prescription",
            self._store.update(
                COLLECTION_PRESCRIPTIONS,
                {"_id": prescription_id},
                {**changes, "updated_at": now_iso()},
            ),
        )
        if updated == 0:
            raise HandlerError(
                code=HandlerErrorCodes.NOT_FOUND,
                message=f"Prescription not found: {prescription_id}",
            )

    async def _call_store(self, op: str, awaitable: Any) -> Any:  # noqa: ANN401
        try:
            return await awaitable
        except StoreError as e:
            raise HandlerError(
                code=HandlerErrorCodes.STORE_FAILED,
                message=f"Failed to {op}: {e}",
                cause=e,
            ) from e

    async def emit(
        self, inbound: EventEnvelope, topic: str, payload: Mapping[str, Any]
    ) -> EventEnvelope:
        """後続イベントを発行する。キーは subject_id。"""
        event = create_event(inbound.correlation_id, inbound.subject_id, payload)
        try:
            await self._producer.publish_async(
                topic,
                event.to_json(),
                key=event.subject_id,
                headers={X_CORRELATION_ID: event.correlation_id},
            )
        except MessagingError as e:
            raise HandlerError(
                code=HandlerErrorCodes.PUBLISH_FAILED,
                message=f"Failed to publish {topic}: {e}",
                cause=e,
            ) from e
        logger.info("stage_event_emitted", emitted_topic=topic, event_id=event.event_id)
        return event
