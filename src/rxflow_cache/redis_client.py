"""redis-py asyncio ベースの CacheClient 実装"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .client import CacheClient
from .exceptions import CacheError, CacheErrorCodes

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _to_millis(ttl: float) -> int:
    return max(int(ttl * 1000), 1)


class RedisCacheClient(CacheClient):
    """Redis キャッシュクライアント。

    ソケット・接続タイムアウトはクライアント自身が持ち、呼び出し側の
    ポーリングタイムアウトとは独立している。redis のエラーはすべて
    CacheError に変換される。
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        socket_timeout: float = 5.0,
        socket_connect_timeout: float = 5.0,
        client: Any | None = None,
    ) -> None:
        self._url = url
        if client is None:
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_connect_timeout,
            )
        self._client = client

    async def _call(self, op: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        except RedisTimeoutError as e:
            raise CacheError(
                code=CacheErrorCodes.TIMEOUT,
                message=f"Redis {op} timed out: {e}",
                cause=e,
            ) from e
        except RedisError as e:
            raise CacheError(
                code=CacheErrorCodes.CONNECTION_ERROR,
                message=f"Redis {op} failed: {e}",
                cause=e,
            ) from e

    async def ping(self) -> bool:
        """Redis への疎通を確認する。"""
        return bool(await self._call("ping", lambda: self._client.ping()))

    async def get(self, key: str) -> str | None:
        return await self._call("get", lambda: self._client.get(key))

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        px = _to_millis(ttl) if ttl is not None else None
        await self._call("set", lambda: self._client.set(key, value, px=px))

    async def set_nx(self, key: str, value: str, ttl: float) -> bool:
        result = await self._call(
            "set_nx",
            lambda: self._client.set(key, value, nx=True, px=_to_millis(ttl)),
        )
        return bool(result)

    async def exists(self, key: str) -> bool:
        count = await self._call("exists", lambda: self._client.exists(key))
        return int(count) > 0

    async def incr(self, key: str) -> int:
        return int(await self._call("incr", lambda: self._client.incr(key)))

    async def expire(self, key: str, ttl: float) -> bool:
        result = await self._call(
            "expire", lambda: self._client.pexpire(key, _to_millis(ttl))
        )
        return bool(result)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._call("delete", lambda: self._client.delete(*keys)))

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except RedisError as e:
            logger.warning("redis_close_failed", url=self._url, error=str(e))
