"""ワーカーのメトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("rxflow", version="0.1.0")

messages_processed_total = _meter.create_counter(
    name="messages_processed_total",
    description="Total number of consumed messages by topic and outcome",
    unit="1",
)

dead_letters_total = _meter.create_counter(
    name="dead_letters_total",
    description="Total number of messages routed to the dead-letter queue",
    unit="1",
)

handler_duration_seconds = _meter.create_histogram(
    name="handler_duration_seconds",
    description="Handler execution time in seconds",
    unit="s",
)

poll_errors_total = _meter.create_counter(
    name="poll_errors_total",
    description="Total number of broker poll errors",
    unit="1",
)
