"""ハンドラ実行のトレーシング"""

from __future__ import annotations

from opentelemetry import trace

_tracer = trace.get_tracer("rxflow", "0.1.0")


def get_tracer() -> trace.Tracer:
    return _tracer


def handler_span(topic: str, correlation_id: str, partition: int, offset: int):
    """1 メッセージ分のハンドラ実行を囲むスパンを開始する。"""
    return _tracer.start_as_current_span(
        f"handle {topic}",
        kind=trace.SpanKind.CONSUMER,
        attributes={
            "messaging.system": "kafka",
            "messaging.destination.name": topic,
            "messaging.kafka.destination.partition": partition,
            "messaging.kafka.message.offset": offset,
            "rxflow.correlation_id": correlation_id,
        },
    )
