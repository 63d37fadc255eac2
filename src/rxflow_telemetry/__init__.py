"""rxflow telemetry library."""

from .exceptions import TelemetryError, TelemetryErrorCodes
from .initializer import init_telemetry
from .logger import new_logger
from .metrics import (
    dead_letters_total,
    handler_duration_seconds,
    messages_processed_total,
    poll_errors_total,
)
from .models import LogConfig, MetricsConfig, TelemetryConfig, TraceConfig
from .tracing import get_tracer, handler_span

__all__ = [
    "TelemetryConfig",
    "LogConfig",
    "TraceConfig",
    "MetricsConfig",
    "init_telemetry",
    "new_logger",
    "get_tracer",
    "handler_span",
    "messages_processed_total",
    "dead_letters_total",
    "handler_duration_seconds",
    "poll_errors_total",
    "TelemetryError",
    "TelemetryErrorCodes",
]
