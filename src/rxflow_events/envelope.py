"""イベントエンベロープと相関ID伝播"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .exceptions import EnvelopeError, EnvelopeErrorCodes
from .generator import generate_correlation_id, generate_event_id, utc_timestamp

RESERVED_FIELDS: frozenset[str] = frozenset(
    {"event_id", "correlation_id", "subject_id", "timestamp"}
)


@dataclass(frozen=True)
class EventEnvelope:
    """ワークフローの各トピックで運ばれるイベントエンベロープ。

    予約フィールド 4 つは固定構造で持ち、ステージ固有のデータは payload に置く。
    ワイヤ形式は予約フィールドと payload を平坦化した 1 つの JSON オブジェクト。
    発行後は不変で、次のトピックへは常に新しいエンベロープを作って送る。
    """

    event_id: str
    correlation_id: str
    subject_id: str
    timestamp: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.subject_id:
            raise EnvelopeError(
                code=EnvelopeErrorCodes.MISSING_FIELD,
                message="subject_id cannot be empty",
            )
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def get(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        """payload の値を取得する。"""
        return self.payload.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """ワイヤ形式の辞書に変換する。予約フィールドが payload より優先される。"""
        data: dict[str, Any] = {
            k: v for k, v in self.payload.items() if k not in RESERVED_FIELDS
        }
        data.update(
            event_id=self.event_id,
            correlation_id=self.correlation_id,
            subject_id=self.subject_id,
            timestamp=self.timestamp,
        )
        return data

    def to_json(self) -> bytes:
        """UTF-8 エンコードした JSON バイト列に変換する。"""
        return json.dumps(self.to_dict(), default=str).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EventEnvelope:
        """ワイヤ形式の辞書から EventEnvelope を生成する。

        correlation_id が欠けている場合は新規生成する（トレースの欠落は致命的ではない）。
        subject_id が欠けている場合は EnvelopeError。
        """
        subject_id = data.get("subject_id")
        if not isinstance(subject_id, str) or not subject_id:
            raise EnvelopeError(
                code=EnvelopeErrorCodes.MISSING_FIELD,
                message="subject_id is required",
            )
        correlation_id = data.get("correlation_id")
        if not isinstance(correlation_id, str) or not correlation_id:
            correlation_id = generate_correlation_id()
        event_id = data.get("event_id")
        timestamp = data.get("timestamp")
        return cls(
            event_id=event_id if isinstance(event_id, str) and event_id else generate_event_id(),
            correlation_id=correlation_id,
            subject_id=subject_id,
            timestamp=timestamp if isinstance(timestamp, str) and timestamp else utc_timestamp(),
            payload={k: v for k, v in data.items() if k not in RESERVED_FIELDS},
        )

    @classmethod
    def from_json(cls, raw: bytes | str) -> EventEnvelope:
        """JSON バイト列から EventEnvelope を生成する。"""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as e:
            raise EnvelopeError(
                code=EnvelopeErrorCodes.DECODE_FAILED,
                message=f"Failed to decode envelope: {e}",
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise EnvelopeError(
                code=EnvelopeErrorCodes.DECODE_FAILED,
                message=f"Envelope must be a JSON object, got {type(data).__name__}",
            )
        return cls.from_dict(data)


def create_event(
    correlation_id: str,
    subject_id: str,
    payload: Mapping[str, Any] | None = None,
) -> EventEnvelope:
    """新しいイベントエンベロープを生成する。

    event_id とタイムスタンプは常に新規に付与する。payload に予約フィールドが
    含まれていても無視され、エンベロープの値を上書きしない。
    """
    extra = {k: v for k, v in (payload or {}).items() if k not in RESERVED_FIELDS}
    return EventEnvelope(
        event_id=generate_event_id(),
        correlation_id=correlation_id or generate_correlation_id(),
        subject_id=subject_id,
        timestamp=utc_timestamp(),
        payload=extra,
    )


def extract_correlation_id(raw: bytes | str | None) -> str:
    """生メッセージから correlation_id を取り出す。

    デコード失敗やフィールド欠落時は新しい相関IDを生成して返す。例外は送出しない。
    """
    if raw:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError, RecursionError):
            data = None
        if isinstance(data, dict):
            correlation_id = data.get("correlation_id")
            if isinstance(correlation_id, str) and correlation_id:
                return correlation_id
    return generate_correlation_id()
