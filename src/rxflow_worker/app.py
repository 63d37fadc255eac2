"""ワーカープロセスの組み立てとエントリーポイント"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog
from rxflow_cache import CacheClient, RedisCacheClient
from rxflow_capacity import CapacityTracker
from rxflow_config import AppConfig, ConfigError, load, overrides_from_env
from rxflow_messaging import (
    ConsumerConfig,
    EventProducer,
    KafkaEventConsumer,
    KafkaEventProducer,
    ProducerConfig,
)
from rxflow_stages import DocumentStore, InMemoryDocumentStore, build_stage_handlers
from rxflow_telemetry import (
    LogConfig,
    MetricsConfig,
    TelemetryConfig,
    TelemetryError,
    TraceConfig,
    init_telemetry,
    new_logger,
)

from .consumer import PollMode, WorkerConfig, WorkflowConsumer
from .dead_letter import ProducerDeadLetterSink
from .exceptions import WorkerError
from .registry import HandlerRegistry

logger = structlog.get_logger(__name__)


class WorkerApp:
    """コンシューマーループと、その停止時に閉じるリソースをまとめる。"""

    def __init__(
        self,
        consumer: WorkflowConsumer,
        producer: EventProducer,
        cache: CacheClient | None = None,
    ) -> None:
        self._consumer = consumer
        self._producer = producer
        self._cache = cache

    @property
    def consumer(self) -> WorkflowConsumer:
        return self._consumer

    @classmethod
    def from_config(cls, config: AppConfig, store: DocumentStore | None = None) -> WorkerApp:
        """設定から Kafka・Redis・全ステージを配線した WorkerApp を作る。"""
        kafka = config.kafka
        consumer = KafkaEventConsumer(
            ConsumerConfig(
                brokers=list(kafka.brokers),
                group_id=kafka.consumer_group,
                client_id=kafka.client_id,
                auto_offset_reset=kafka.auto_offset_reset,
            )
        )
        producer = KafkaEventProducer(
            ProducerConfig(brokers=list(kafka.brokers), client_id=kafka.client_id)
        )
        cache = RedisCacheClient(
            url=config.redis.url,
            socket_timeout=config.redis.socket_timeout,
            socket_connect_timeout=config.redis.socket_connect_timeout,
        )
        coordination = config.coordination
        tracker = CapacityTracker(
            cache,
            ttl=coordination.capacity_ttl_seconds,
            default_max=coordination.capacity_default_max,
            threshold=coordination.capacity_threshold,
        )
        if store is None:
            logger.warning("document_store_in_memory")
            store = InMemoryDocumentStore()

        registry = HandlerRegistry(build_stage_handlers(store, producer, tracker))
        worker = config.worker
        loop = WorkflowConsumer(
            consumer,
            registry,
            ProducerDeadLetterSink(producer),
            WorkerConfig(
                poll_mode=PollMode(worker.poll_mode),
                poll_timeout_seconds=worker.poll_timeout_seconds,
                batch_size=worker.batch_size,
                batch_interval_seconds=worker.batch_interval_seconds,
                retry_backoff_seconds=worker.retry_backoff_seconds,
            ),
        )
        return cls(loop, producer, cache)

    async def run(self) -> None:
        """停止要求までコンシューマーループを実行する。"""
        await self._consumer.start()

    def stop(self) -> None:
        self._consumer.stop()

    async def shutdown(self) -> None:
        """プロデューサー（フラッシュ付き）とキャッシュを閉じる。エラーは記録のみ。"""
        try:
            self._producer.close()
        except Exception:
            logger.error("producer_close_failed", exc_info=True)
        if self._cache is not None:
            try:
                await self._cache.close()
            except Exception:
                logger.error("cache_close_failed", exc_info=True)
        logger.info("worker_shutdown_complete")


def telemetry_config(config: AppConfig) -> TelemetryConfig:
    obs = config.observability
    return TelemetryConfig(
        service_name=config.app.name,
        service_version=config.app.version,
        environment=config.app.environment,
        log=LogConfig(level=obs.log.level, format=obs.log.format),
        trace=TraceConfig(
            enabled=obs.trace.enabled,
            endpoint=obs.trace.endpoint,
            sample_rate=obs.trace.sample_rate,
        ),
        metrics=MetricsConfig(
            enabled=obs.metrics.enabled,
            export_interval_seconds=obs.metrics.export_interval_seconds,
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rxflow-worker",
        description="Run the prescription workflow consumer.",
    )
    parser.add_argument("--config", type=Path, required=True, help="base YAML config")
    parser.add_argument("--env-config", type=Path, default=None, help="environment overlay YAML")
    return parser


async def serve(app: WorkerApp) -> None:
    """SIGINT/SIGTERM で停止するようにしてワーカーを実行し、最後に後始末する。"""
    loop = asyncio.get_running_loop()

    def handle_shutdown(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        app.stop()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_shutdown, sig)
    else:
        signal.signal(
            signal.SIGINT,
            lambda signum, frame: loop.call_soon_threadsafe(
                handle_shutdown, signal.Signals(signum)
            ),
        )

    try:
        await app.run()
    finally:
        await app.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    """rxflow-worker のエントリーポイント。終了コードを返す。"""
    args = build_parser().parse_args(argv)
    try:
        config = load(args.config, args.env_config, overrides_from_env(os.environ))
    except ConfigError as e:
        print(f"rxflow-worker: {e}", file=sys.stderr)
        return 2

    new_logger(config.observability.log.level, config.observability.log.format)
    try:
        init_telemetry(telemetry_config(config))
    except TelemetryError as e:
        logger.error("telemetry_init_failed", error=str(e))
        return 1

    logger.info(
        "worker_starting",
        service=config.app.name,
        environment=config.app.environment,
        brokers=config.kafka.brokers,
        poll_mode=config.worker.poll_mode,
    )
    app = WorkerApp.from_config(config)
    try:
        asyncio.run(serve(app))
    except WorkerError as e:
        logger.error("worker_failed", error=str(e))
        return 1
    logger.info("worker_stopped")
    return 0
