"""設定ローダーのユニットテスト"""

from pathlib import Path

import pytest
from rxflow_config import (
    AppConfig,
    ConfigError,
    ConfigErrorCodes,
    apply_overrides,
    deep_merge,
    load,
    nest_dotted,
    overrides_from_env,
)


def test_defaults_are_valid() -> None:
    """全セクションが既定値を持つこと。"""
    config = AppConfig()
    assert config.kafka.brokers == ["localhost:9092"]
    assert config.kafka.consumer_group == "prescription-workers"
    assert config.worker.poll_mode == "single"
    assert config.coordination.dedup_ttl_seconds == 300
    assert config.coordination.capacity_threshold == 0.95


def test_load_minimal_config(tmp_path: Path) -> None:
    """最小設定ファイルの読み込み。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("app:\n  name: rx-test\n")
    config = load(config_file)
    assert config.app.name == "rx-test"
    assert config.redis.url.startswith("redis://")


def test_load_with_env_override(tmp_path: Path) -> None:
    """環境別設定のマージ確認。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text("kafka:\n  brokers: [k1:9092]\nworker:\n  batch_size: 10\n")
    env_file = tmp_path / "prod.yaml"
    env_file.write_text("worker:\n  poll_mode: batch\n  batch_size: 50\n")
    config = load(base_file, env_file)
    assert config.kafka.brokers == ["k1:9092"]
    assert config.worker.poll_mode == "batch"
    assert config.worker.batch_size == 50


def test_load_env_not_exists(tmp_path: Path) -> None:
    """env_path が存在しない場合は base のみ使用。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text("app:\n  name: fallback\n")
    config = load(base_file, tmp_path / "nonexistent.yaml")
    assert config.app.name == "fallback"


def test_load_with_dotted_overrides(tmp_path: Path) -> None:
    """ドット区切りの上書きが最後に適用されること。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text("kafka:\n  brokers: [k1:9092]\n")
    config = load(
        base_file,
        overrides={"kafka.brokers": "a:9092, b:9092", "worker.batch_size": "5"},
    )
    assert config.kafka.brokers == ["a:9092", "b:9092"]
    assert config.worker.batch_size == 5


def test_load_file_not_found(tmp_path: Path) -> None:
    """存在しないファイルで ConfigError(READ_FILE_ERROR) が発生すること。"""
    with pytest.raises(ConfigError) as exc_info:
        load(tmp_path / "missing.yaml")
    assert exc_info.value.code == ConfigErrorCodes.READ_FILE


def test_load_invalid_yaml(tmp_path: Path) -> None:
    """不正な YAML で PARSE_YAML_ERROR。"""
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("kafka: [unclosed\n")
    with pytest.raises(ConfigError) as exc_info:
        load(config_file)
    assert exc_info.value.code == ConfigErrorCodes.PARSE_YAML


def test_load_non_mapping_root(tmp_path: Path) -> None:
    """ルートがマッピングでなければ PARSE_YAML_ERROR。"""
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- a\n- b\n")
    with pytest.raises(ConfigError) as exc_info:
        load(config_file)
    assert exc_info.value.code == ConfigErrorCodes.PARSE_YAML


@pytest.mark.parametrize(
    "body",
    [
        "worker:\n  poll_mode: stream\n",
        "worker:\n  batch_size: 0\n",
        "coordination:\n  capacity_threshold: 1.5\n",
        "kafka:\n  brokers: []\n",
    ],
)
def test_load_validation_error(tmp_path: Path, body: str) -> None:
    """値が範囲外なら VALIDATION_ERROR。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(body)
    with pytest.raises(ConfigError) as exc_info:
        load(config_file)
    assert exc_info.value.code == ConfigErrorCodes.VALIDATION


def test_deep_merge_replaces_lists() -> None:
    """入れ子の辞書はマージし、リストは置換すること。"""
    merged = deep_merge(
        {"kafka": {"brokers": ["a"], "client_id": "x"}},
        {"kafka": {"brokers": ["b"]}},
    )
    assert merged == {"kafka": {"brokers": ["b"], "client_id": "x"}}


def test_nest_dotted() -> None:
    """ドット区切りキーを入れ子に変換すること。"""
    assert nest_dotted({"a.b.c": 1, "a.d": 2, "e": 3}) == {"a": {"b": {"c": 1}, "d": 2}, "e": 3}


def test_overrides_from_env() -> None:
    """接頭辞付きの環境変数だけを設定パスに変換すること。"""
    environ = {
        "RXFLOW__KAFKA__BROKERS": "k:9092",
        "RXFLOW__WORKER__POLL_MODE": "batch",
        "PATH": "/usr/bin",
    }
    assert overrides_from_env(environ) == {
        "kafka.brokers": "k:9092",
        "worker.poll_mode": "batch",
    }


def test_apply_overrides() -> None:
    """上書き後の新しい設定を返し、元の設定は変えないこと。"""
    config = AppConfig()
    updated = apply_overrides(config, {"redis.url": "redis://cache:6379/1"})
    assert updated.redis.url == "redis://cache:6379/1"
    assert config.redis.url != updated.redis.url
    assert apply_overrides(config, {}) is config


def test_apply_overrides_invalid() -> None:
    """不正な上書きは VALIDATION_ERROR。"""
    with pytest.raises(ConfigError) as exc_info:
        apply_overrides(AppConfig(), {"worker.poll_timeout_seconds": "-1"})
    assert exc_info.value.code == ConfigErrorCodes.VALIDATION
