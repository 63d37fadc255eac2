"""asyncio ベースのコンシューマーループ"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum

import structlog
from rxflow_events import extract_correlation_id
from rxflow_messaging import ConsumedMessage, EventConsumer, MessagingError
from rxflow_telemetry import (
    dead_letters_total,
    handler_duration_seconds,
    handler_span,
    messages_processed_total,
    poll_errors_total,
)

from .dead_letter import DeadLetterSink
from .exceptions import WorkerError, WorkerErrorCodes
from .registry import HandlerRegistry

logger = structlog.get_logger(__name__)

NO_HANDLER_REASON = "no handler registered"


class ConsumerState(Enum):
    """コンシューマーループの状態。"""

    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class PollMode(Enum):
    """ポーリング方式。"""

    SINGLE = "single"
    BATCH = "batch"


@dataclass
class WorkerConfig:
    """コンシューマーループ設定。"""

    poll_mode: PollMode = PollMode.SINGLE
    poll_timeout_seconds: float = 1.0
    batch_size: int = 10
    batch_interval_seconds: float = 10.0
    retry_backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        if not isinstance(self.poll_mode, PollMode):
            self.poll_mode = PollMode(self.poll_mode)
        if self.poll_timeout_seconds <= 0:
            raise ValueError("poll_timeout_seconds must be positive")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.batch_interval_seconds < 0 or self.retry_backoff_seconds < 0:
            raise ValueError("intervals must be non-negative")


class WorkflowConsumer:
    """登録済みトピックを購読し、メッセージをハンドラへ振り分けるループ。

    ハンドラは 1 件ずつ順番に呼び出す。成否にかかわらずオフセットは処理後に
    コミットするため、配送は at-least-once になる。ルーティングできない
    メッセージとハンドラが失敗したメッセージはデッドレターに送る。
    """

    def __init__(
        self,
        consumer: EventConsumer,
        registry: HandlerRegistry,
        dead_letters: DeadLetterSink,
        config: WorkerConfig | None = None,
    ) -> None:
        self._consumer = consumer
        self._registry = registry
        self._dead_letters = dead_letters
        self._config = config or WorkerConfig()
        self._state = ConsumerState.IDLE
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def config(self) -> WorkerConfig:
        return self._config

    def stop(self) -> None:
        """停止を要求する。処理中のメッセージ（バッチ）は最後まで処理される。"""
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def start(self, stop_event: asyncio.Event | None = None) -> None:
        """購読を開始し、停止要求までループを実行する。

        Args:
            stop_event: 外部から停止を通知するイベント（オプション）

        Raises:
            WorkerError: 購読に失敗した場合（SUBSCRIBE_FAILED）
        """
        if stop_event is not None:
            self._stop_event = stop_event

        topics = sorted(self._registry.list_topics())
        if not topics:
            logger.warning("no_handlers_registered")
            self._state = ConsumerState.STOPPED
            return

        try:
            self._consumer.subscribe(topics)
        except MessagingError as e:
            self._state = ConsumerState.STOPPED
            raise WorkerError(
                code=WorkerErrorCodes.SUBSCRIBE_FAILED,
                message=f"Failed to subscribe to {topics}",
                cause=e,
            ) from e
        self._state = ConsumerState.SUBSCRIBED
        logger.info(
            "consumer_subscribed",
            topics=topics,
            poll_mode=self._config.poll_mode.value,
        )

        try:
            self._state = ConsumerState.RUNNING
            if self._config.poll_mode is PollMode.BATCH:
                await self._run_batch()
            else:
                await self._run_single()
        finally:
            self._state = ConsumerState.DRAINING
            try:
                self._consumer.close()
            except Exception:
                logger.error("consumer_close_failed", exc_info=True)
            self._state = ConsumerState.STOPPED
            logger.info("consumer_stopped")

    async def _run_single(self) -> None:
        while not self._stop_event.is_set():
            try:
                message = await self._consumer.receive_async(self._config.poll_timeout_seconds)
            except MessagingError as e:
                await self._on_poll_error(e)
                continue
            if message is None:
                continue
            await self.process_message(message)

    async def _run_batch(self) -> None:
        while not self._stop_event.is_set():
            tick_started = time.monotonic()
            try:
                batch = await self._consumer.receive_batch_async(
                    self._config.poll_timeout_seconds, self._config.batch_size
                )
            except MessagingError as e:
                await self._on_poll_error(e)
                continue
            if batch:
                logger.debug("batch_received", size=len(batch))
            for message in batch:
                await self.process_message(message)
            elapsed = time.monotonic() - tick_started
            await self._wait_for_stop(self._config.batch_interval_seconds - elapsed)

    async def _on_poll_error(self, error: MessagingError) -> None:
        poll_errors_total.add(1)
        logger.error(
            "poll_failed",
            error=str(error),
            retry_in=self._config.retry_backoff_seconds,
        )
        await self._wait_for_stop(self._config.retry_backoff_seconds)

    async def _wait_for_stop(self, timeout: float) -> bool:
        """停止要求か timeout 経過まで待つ。停止要求なら True。"""
        if timeout <= 0:
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout)
        except TimeoutError:
            return False
        return True

    async def process_message(self, message: ConsumedMessage) -> bool:
        """1 件のメッセージを処理し、ハンドラが成功した場合のみ True を返す。"""
        correlation_id = extract_correlation_id(message.value)
        with structlog.contextvars.bound_contextvars(
            topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            correlation_id=correlation_id,
        ):
            handler = self._registry.get_handler(message.topic)
            if handler is None:
                logger.warning("no_handler_for_topic")
                outcome = "unroutable"
                await self._send_dead_letter(message, NO_HANDLER_REASON)
            else:
                started = time.perf_counter()
                try:
                    with handler_span(
                        message.topic, correlation_id, message.partition, message.offset
                    ):
                        await handler.handle(message)
                except Exception as e:
                    outcome = "failed"
                    logger.error("handler_failed", error=str(e), exc_info=True)
                    await self._send_dead_letter(message, str(e))
                else:
                    outcome = "success"
                    logger.info("message_processed")
                finally:
                    handler_duration_seconds.record(
                        time.perf_counter() - started, {"topic": message.topic}
                    )

            messages_processed_total.add(1, {"topic": message.topic, "outcome": outcome})
            self._commit(message)
            return outcome == "success"

    async def _send_dead_letter(self, message: ConsumedMessage, reason: str) -> None:
        dead_letters_total.add(1, {"topic": message.topic})
        await self._dead_letters.publish_dead_letter(message, reason)

    def _commit(self, message: ConsumedMessage) -> None:
        try:
            self._consumer.commit(message)
        except MessagingError as e:
            logger.error("commit_failed", error=str(e))
