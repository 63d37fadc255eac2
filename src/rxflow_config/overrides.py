"""ドット区切りキーによる設定上書き"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .exceptions import ConfigError, ConfigErrorCodes
from .merger import deep_merge, nest_dotted
from .models import AppConfig

ENV_PREFIX = "RXFLOW__"


def overrides_from_env(
    environ: Mapping[str, str], prefix: str = ENV_PREFIX
) -> dict[str, str]:
    """環境変数から上書き値を取り出す。

    例: RXFLOW__KAFKA__BROKERS=a:9092,b:9092 -> {"kafka.brokers": "a:9092,b:9092"}
    """
    result: dict[str, str] = {}
    for name, value in environ.items():
        if not name.startswith(prefix):
            continue
        path = name[len(prefix):].lower().replace("__", ".")
        if path:
            result[path] = value
    return result


def apply_overrides(config: AppConfig, overrides: Mapping[str, Any]) -> AppConfig:
    """上書き値を設定にマージして新しい AppConfig を返す。

    overrides のキーは設定パス（ドット区切り）。
    例: {"worker.poll_mode": "batch", "redis.url": "redis://cache:6379/1"}
    """
    if not overrides:
        return config
    data = deep_merge(config.model_dump(), nest_dotted(overrides))
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            code=ConfigErrorCodes.VALIDATION,
            message=f"Config validation failed after overrides: {e}",
            cause=e,
        ) from e
