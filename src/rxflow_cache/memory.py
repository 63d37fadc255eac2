"""InMemoryCacheClient 実装"""

from __future__ import annotations

import time

from .client import CacheClient
from .exceptions import CacheError, CacheErrorCodes


class _CacheEntry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: str, ttl: float | None) -> None:
        self.value = value
        self.expires_at: float | None = (
            time.monotonic() + ttl if ttl is not None else None
        )

    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class InMemoryCacheClient(CacheClient):
    """テスト用インメモリキャッシュクライアント。

    各操作は await を挟まずに完結するため、同一イベントループ上では
    set_nx と incr がアトミックに振る舞う。
    """

    def __init__(self) -> None:
        self._store: dict[str, _CacheEntry] = {}

    def _live(self, key: str) -> _CacheEntry | None:
        entry = self._store.get(key)
        if entry is not None and entry.is_expired():
            del self._store[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry.value if entry is not None else None

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        self._store[key] = _CacheEntry(value, ttl)

    async def set_nx(self, key: str, value: str, ttl: float) -> bool:
        if self._live(key) is not None:
            return False
        self._store[key] = _CacheEntry(value, ttl)
        return True

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def incr(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            self._store[key] = _CacheEntry("1", None)
            return 1
        try:
            count = int(entry.value) + 1
        except ValueError as e:
            raise CacheError(
                code=CacheErrorCodes.SERIALIZATION_ERROR,
                message=f"value at {key} is not an integer",
                cause=e,
            ) from e
        entry.value = str(count)
        return count

    async def expire(self, key: str, ttl: float) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        entry.expires_at = time.monotonic() + ttl
        return True

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._live(key) is not None:
                del self._store[key]
                deleted += 1
        return deleted

    def ttl(self, key: str) -> float | None:
        """残り有効期限（秒）を返す。期限なし・存在しない場合は None。テスト用。"""
        entry = self._live(key)
        if entry is None or entry.expires_at is None:
            return None
        return max(entry.expires_at - time.monotonic(), 0.0)
