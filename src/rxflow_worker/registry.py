"""トピック -> ハンドラのディスパッチ表"""

from __future__ import annotations

import structlog

from ._rwlock import ReadWriteLock
from .exceptions import InvalidHandlerError
from .handler import Handler

logger = structlog.get_logger(__name__)


class HandlerRegistry:
    """トピックごとに最大 1 つのハンドラを保持するレジストリ。

    同じトピックへの再登録は後勝ちで、置き換えたハンドラを返し警告を記録する。
    登録・参照はスレッドセーフ。
    """

    def __init__(self, handlers: list[Handler] | None = None) -> None:
        self._handlers: dict[str, Handler] = {}
        self._lock = ReadWriteLock()
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: Handler | None) -> Handler | None:
        """ハンドラを登録し、置き換えた既存ハンドラ（なければ None）を返す。

        Raises:
            InvalidHandlerError: handler が None、またはトピックが空の場合
        """
        if handler is None:
            raise InvalidHandlerError("handler cannot be None")
        topic = handler.topic()
        if not topic:
            raise InvalidHandlerError(
                f"handler {type(handler).__name__} returned an empty topic"
            )
        with self._lock.write():
            previous = self._handlers.get(topic)
            self._handlers[topic] = handler
        if previous is not None and previous is not handler:
            logger.warning(
                "handler_replaced",
                topic=topic,
                previous=type(previous).__name__,
                handler=type(handler).__name__,
            )
        else:
            logger.debug("handler_registered", topic=topic, handler=type(handler).__name__)
        return previous

    def get_handler(self, topic: str) -> Handler | None:
        with self._lock.read():
            return self._handlers.get(topic)

    def has_handler(self, topic: str) -> bool:
        with self._lock.read():
            return topic in self._handlers

    def list_topics(self) -> frozenset[str]:
        with self._lock.read():
            return frozenset(self._handlers)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._handlers)

    def __contains__(self, topic: object) -> bool:
        return isinstance(topic, str) and self.has_handler(topic)
