"""ワーカーの組み立てとエントリーポイントのテスト"""

from pathlib import Path

import pytest
from rxflow_config import AppConfig
from rxflow_events import WORKFLOW_TOPICS
from rxflow_messaging import InMemoryBroker
from rxflow_worker import (
    ConsumerState,
    HandlerRegistry,
    PollMode,
    ProducerDeadLetterSink,
    WorkerError,
    WorkerErrorCodes,
    WorkflowConsumer,
)
from rxflow_worker.app import WorkerApp, build_parser, main, serve, telemetry_config


def test_from_config_wires_every_stage(mocker) -> None:
    """設定から全ステージを登録したワーカーが組み立てられること。"""
    mocker.patch("redis.asyncio.from_url")
    config = AppConfig.model_validate({"worker": {"poll_mode": "batch", "batch_size": 25}})

    app = WorkerApp.from_config(config)

    topics = app.consumer._registry.list_topics()
    assert len(topics) == 7
    assert topics < frozenset(WORKFLOW_TOPICS)
    assert app.consumer.config.poll_mode is PollMode.BATCH
    assert app.consumer.config.batch_size == 25
    assert app.consumer.state is ConsumerState.IDLE


def test_telemetry_config_maps_sections() -> None:
    """observability セクションがテレメトリー設定に写されること。"""
    config = AppConfig.model_validate(
        {
            "app": {"name": "rx", "environment": "staging"},
            "observability": {"log": {"level": "DEBUG"}, "trace": {"enabled": True}},
        }
    )
    telemetry = telemetry_config(config)
    assert telemetry.service_name == "rx"
    assert telemetry.environment == "staging"
    assert telemetry.log.level == "DEBUG"
    assert telemetry.trace.enabled


def test_build_parser_requires_config() -> None:
    """--config が必須であること。"""
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
    args = build_parser().parse_args(["--config", "c.yaml", "--env-config", "prod.yaml"])
    assert args.config == Path("c.yaml")
    assert args.env_config == Path("prod.yaml")


async def test_serve_runs_and_shuts_down(broker: InMemoryBroker) -> None:
    """ワーカー終了後にプロデューサーが閉じられること。"""
    producer = broker.producer()
    consumer = WorkflowConsumer(broker.consumer(), HandlerRegistry(), ProducerDeadLetterSink(producer))
    app = WorkerApp(consumer, producer)

    await serve(app)

    assert consumer.state is ConsumerState.STOPPED
    assert producer.closed


async def test_shutdown_logs_close_errors(broker: InMemoryBroker, mocker) -> None:
    """後始末のエラーは送出しないこと。"""
    producer = mocker.MagicMock()
    producer.close.side_effect = RuntimeError("flush failed")
    cache = mocker.AsyncMock()
    cache.close.side_effect = RuntimeError("gone")
    consumer = WorkflowConsumer(broker.consumer(), HandlerRegistry(), ProducerDeadLetterSink(producer))

    await WorkerApp(consumer, producer, cache).shutdown()
    cache.close.assert_awaited_once()


def test_main_missing_config_returns_2(tmp_path: Path) -> None:
    """設定ファイルがなければ終了コード 2。"""
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 2


def test_main_runs_worker(tmp_path: Path, mocker) -> None:
    """正常終了時は終了コード 0。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("app:\n  name: rx-test\n")
    mocker.patch("rxflow_worker.app.init_telemetry")
    from_config = mocker.patch("rxflow_worker.app.WorkerApp.from_config")
    serve_mock = mocker.patch("rxflow_worker.app.serve", new_callable=mocker.AsyncMock)

    assert main(["--config", str(config_file)]) == 0
    assert from_config.call_args.args[0].app.name == "rx-test"
    serve_mock.assert_awaited_once_with(from_config.return_value)


def test_main_worker_error_returns_1(tmp_path: Path, mocker) -> None:
    """ワーカーの致命的エラーは終了コード 1。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("{}\n")
    mocker.patch("rxflow_worker.app.init_telemetry")
    mocker.patch("rxflow_worker.app.WorkerApp.from_config")
    mocker.patch(
        "rxflow_worker.app.serve",
        new_callable=mocker.AsyncMock,
        side_effect=WorkerError(WorkerErrorCodes.SUBSCRIBE_FAILED, "no brokers"),
    )
    assert main(["--config", str(config_file)]) == 1
