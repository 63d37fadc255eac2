"""設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class AppSection(BaseModel):
    """アプリケーション基本設定。"""

    name: str = "rxflow-worker"
    version: str = "0.1.0"
    environment: str = "development"


class KafkaSection(BaseModel):
    """Kafka 接続設定。"""

    brokers: list[str] = Field(default_factory=lambda: ["localhost:9092"], min_length=1)
    consumer_group: str = "prescription-workers"
    client_id: str = "rxflow-worker"
    auto_offset_reset: Literal["earliest", "latest"] = "earliest"

    @field_validator("brokers", mode="before")
    @classmethod
    def _split_brokers(cls, value: object) -> object:
        # 環境変数からはカンマ区切り文字列で渡される
        if isinstance(value, str):
            return [b.strip() for b in value.split(",") if b.strip()]
        return value


class RedisSection(BaseModel):
    """Redis 接続設定。"""

    url: str = "redis://localhost:6379/0"
    socket_timeout: float = Field(default=5.0, gt=0)
    socket_connect_timeout: float = Field(default=5.0, gt=0)


class WorkerSection(BaseModel):
    """コンシューマーループ設定。"""

    poll_mode: Literal["single", "batch"] = "single"
    batch_size: int = Field(default=10, ge=1)
    batch_interval_seconds: float = Field(default=10.0, ge=0)
    poll_timeout_seconds: float = Field(default=1.0, gt=0)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)


class CoordinationSection(BaseModel):
    """重複排除・キャパシティ・レート制限の設定。"""

    dedup_ttl_seconds: float = Field(default=300.0, gt=0)
    capacity_ttl_seconds: float = Field(default=300.0, gt=0)
    capacity_default_max: int = Field(default=100, ge=0)
    capacity_threshold: float = Field(default=0.95, gt=0.0, le=1.0)
    rate_limit_default: int = 60
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class TraceSection(BaseModel):
    """分散トレーシング設定。"""

    enabled: bool = False
    endpoint: str = ""
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class MetricsSection(BaseModel):
    """メトリクス設定。"""

    enabled: bool = True
    export_interval_seconds: float = Field(default=60.0, gt=0)


class ObservabilitySection(BaseModel):
    """可観測性設定。"""

    log: LogSection = Field(default_factory=LogSection)
    trace: TraceSection = Field(default_factory=TraceSection)
    metrics: MetricsSection = Field(default_factory=MetricsSection)


class AppConfig(BaseModel):
    """アプリケーション設定全体。"""

    app: AppSection = Field(default_factory=AppSection)
    kafka: KafkaSection = Field(default_factory=KafkaSection)
    redis: RedisSection = Field(default_factory=RedisSection)
    worker: WorkerSection = Field(default_factory=WorkerSection)
    coordination: CoordinationSection = Field(default_factory=CoordinationSection)
    observability: ObservabilitySection = Field(default_factory=ObservabilitySection)
