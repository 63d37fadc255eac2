"""DeduplicationGuard 実装"""

from __future__ import annotations

import hashlib

import structlog
from rxflow_cache import CacheClient, CacheError

from .models import DedupResult, DedupStatus

logger = structlog.get_logger(__name__)

DEDUP_KEY_PREFIX = "rx:dedup:"
DEFAULT_DEDUP_TTL = 300.0
_MARKER = "1"


def generate_dedup_key(*parts: str) -> str:
    """重複排除キーを生成する。

    "rx:dedup:" + sha256(":".join(parts)) の16進表記。
    例: generate_dedup_key("pt_1", "00093-7146-56", "2026-01-02")
    """
    if not parts:
        raise ValueError("at least one key part is required")
    digest = hashlib.sha256(":".join(parts).encode("utf-8")).hexdigest()
    return DEDUP_KEY_PREFIX + digest


class DeduplicationGuard:
    """TTL 付き存在マーカーで重複投入を検出するガード。

    判定は set_nx の戻り値だけで行う。exists と set を分けて呼ぶと
    同時投入の両方が新規と判定されうるため。
    """

    def __init__(self, cache: CacheClient, ttl: float = DEFAULT_DEDUP_TTL) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._cache = cache
        self._ttl = ttl

    @property
    def ttl(self) -> float:
        return self._ttl

    async def check_and_reserve(self, *parts: str, ttl: float | None = None) -> DedupResult:
        """キーを予約し、新規か重複かを返す。

        キャッシュ障害時は例外を送出せず UNAVAILABLE を返す。
        """
        key = generate_dedup_key(*parts)
        try:
            reserved = await self._cache.set_nx(key, _MARKER, ttl if ttl is not None else self._ttl)
        except CacheError as e:
            logger.warning("dedup_cache_unavailable", key=key, error=str(e))
            return DedupResult(key=key, status=DedupStatus.UNAVAILABLE)

        if reserved:
            return DedupResult(key=key, status=DedupStatus.FRESH)
        logger.info("dedup_duplicate_detected", key=key)
        return DedupResult(key=key, status=DedupStatus.DUPLICATE)

    async def release(self, *parts: str) -> bool:
        """予約済みキーを解放する。解放できたら True。"""
        key = generate_dedup_key(*parts)
        try:
            return await self._cache.delete(key) > 0
        except CacheError as e:
            logger.warning("dedup_release_failed", key=key, error=str(e))
            return False
