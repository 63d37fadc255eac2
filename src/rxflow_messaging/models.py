"""messaging データモデル"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ConsumedMessage:
    """コンシューマーで受信したメッセージ。コアは value をそのまま中継する。"""

    topic: str
    partition: int
    offset: int
    value: bytes
    key: bytes | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def key_str(self) -> str:
        """キーを文字列で返す。キーなしは空文字。"""
        if self.key is None:
            return ""
        return self.key.decode("utf-8", errors="replace")


@dataclass
class ConsumerConfig:
    """コンシューマー設定。"""

    brokers: list[str]
    group_id: str
    client_id: str = ""
    auto_offset_reset: str = "earliest"
    enable_auto_commit: bool = False

    def __post_init__(self) -> None:
        if not self.brokers:
            raise ValueError("At least one broker must be specified")
        if not self.group_id:
            raise ValueError("group_id cannot be empty")

    def to_confluent_config(self) -> dict[str, str | bool]:
        """confluent-kafka 設定辞書に変換する。"""
        config: dict[str, str | bool] = {
            "bootstrap.servers": ",".join(self.brokers),
            "group.id": self.group_id,
            "auto.offset.reset": self.auto_offset_reset,
            "enable.auto.commit": self.enable_auto_commit,
        }
        if self.client_id:
            config["client.id"] = self.client_id
        return config


@dataclass
class ProducerConfig:
    """プロデューサー設定。"""

    brokers: list[str]
    client_id: str = ""
    timeout_seconds: float = 10.0
    acks: str = "1"

    def __post_init__(self) -> None:
        if not self.brokers:
            raise ValueError("At least one broker must be specified")

    def to_confluent_config(self) -> dict[str, str]:
        """confluent-kafka 設定辞書に変換する。"""
        config: dict[str, str] = {
            "bootstrap.servers": ",".join(self.brokers),
            "acks": self.acks,
        }
        if self.client_id:
            config["client.id"] = self.client_id
        return config


def parse_brokers(value: str) -> list[str]:
    """カンマ区切りのブローカー文字列をリストに変換する。空要素は除く。"""
    return [b.strip() for b in value.split(",") if b.strip()]
