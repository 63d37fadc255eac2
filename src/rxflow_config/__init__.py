"""rxflow config library."""

from .exceptions import ConfigError, ConfigErrorCodes
from .loader import load
from .merger import deep_merge, nest_dotted
from .models import (
    AppConfig,
    AppSection,
    CoordinationSection,
    KafkaSection,
    LogSection,
    MetricsSection,
    ObservabilitySection,
    RedisSection,
    TraceSection,
    WorkerSection,
)
from .overrides import ENV_PREFIX, apply_overrides, overrides_from_env

__all__ = [
    "AppSection",
    "KafkaSection",
    "RedisSection",
    "WorkerSection",
    "CoordinationSection",
    "LogSection",
    "TraceSection",
    "MetricsSection",
    "ObservabilitySection",
    "AppConfig",
    "load",
    "deep_merge",
    "nest_dotted",
    "apply_overrides",
    "overrides_from_env",
    "ENV_PREFIX",
    "ConfigError",
    "ConfigErrorCodes",
]
