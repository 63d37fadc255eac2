"""CapacityTracker 実装"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

import structlog
from rxflow_cache import CacheClient

from .exceptions import CapacityError, CapacityErrorCodes, CapacityNotFoundError
from .models import CapacityRecord

logger = structlog.get_logger(__name__)

CAPACITY_KEY_PREFIX = "pharmacy_capacity:"
DEFAULT_CAPACITY_TTL = 300.0
DEFAULT_MAX_COUNT = 100
DEFAULT_THRESHOLD = 0.95


def capacity_key(resource_id: str) -> str:
    return CAPACITY_KEY_PREFIX + resource_id


@runtime_checkable
class CapacitySource(Protocol):
    """キャパシティの正となる情報源（薬局マスタ等）。"""

    async def load_capacity(self, resource_id: str) -> CapacityRecord | None: ...


class CapacityTracker:
    """キャッシュ上でリソースの利用数を追跡する。

    increment/decrement は読み取り・更新・書き込みで実装されるため、
    同一プロセス内では asyncio.Lock で直列化するが、複数プロセス間では
    近似値となる。キャッシュは正ではなく、source を設定した場合は
    refresh で再同期できる。すべての更新で TTL を張り直す。
    """

    def __init__(
        self,
        cache: CacheClient,
        ttl: float = DEFAULT_CAPACITY_TTL,
        default_max: int = DEFAULT_MAX_COUNT,
        threshold: float = DEFAULT_THRESHOLD,
        source: CapacitySource | None = None,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        if default_max < 0:
            raise ValueError(f"default_max must be non-negative, got {default_max}")
        self._cache = cache
        self._ttl = ttl
        self._default_max = default_max
        self._threshold = threshold
        self._source = source
        self._lock = asyncio.Lock()

    @property
    def threshold(self) -> float:
        return self._threshold

    async def get(self, resource_id: str) -> CapacityRecord:
        """レコードを取得する。

        Raises:
            CapacityNotFoundError: レコードが存在しない（期限切れを含む）場合
        """
        record = await self._load(resource_id)
        if record is None:
            raise CapacityNotFoundError(resource_id)
        return record

    async def set(
        self,
        resource_id: str,
        current: int,
        max_count: int,
        ttl: float | None = None,
    ) -> CapacityRecord:
        if current < 0 or max_count < 0:
            raise ValueError(
                f"capacity counts must be non-negative, got current={current} max={max_count}"
            )
        record = CapacityRecord(
            resource_id=resource_id, current_count=current, max_count=max_count
        )
        await self._save(record, ttl)
        return record

    async def increment(self, resource_id: str) -> tuple[int, float]:
        """利用数を 1 増やし、(新しい利用数, 利用率) を返す。"""
        async with self._lock:
            record = await self._load(resource_id)
            if record is None:
                record = await self._seed(resource_id)
            record.current_count += 1
            await self._save(record)
        logger.debug(
            "capacity_incremented",
            resource_id=resource_id,
            count=record.current_count,
            utilization=record.utilization,
        )
        return record.current_count, record.utilization

    async def decrement(self, resource_id: str) -> tuple[int, float]:
        """利用数を 1 減らし、(新しい利用数, 利用率) を返す。0 未満にはならない。

        Raises:
            CapacityNotFoundError: レコードが存在しない場合
        """
        async with self._lock:
            record = await self._load(resource_id)
            if record is None:
                raise CapacityNotFoundError(resource_id)
            record.current_count = max(record.current_count - 1, 0)
            await self._save(record)
        logger.debug(
            "capacity_decremented",
            resource_id=resource_id,
            count=record.current_count,
            utilization=record.utilization,
        )
        return record.current_count, record.utilization

    async def has_capacity(self, resource_id: str, threshold: float | None = None) -> bool:
        """利用率が閾値未満なら True。レコードがない場合は既定値（空き）とみなす。"""
        limit = self._threshold if threshold is None else threshold
        record = await self._load(resource_id)
        if record is None:
            record = CapacityRecord(resource_id=resource_id, max_count=self._default_max)
        return record.utilization < limit

    async def delete(self, resource_id: str) -> bool:
        return await self._cache.delete(capacity_key(resource_id)) > 0

    async def refresh(self, resource_id: str) -> CapacityRecord:
        """source からレコードを読み直してキャッシュを上書きする。

        Raises:
            CapacityError: source が未設定の場合
            CapacityNotFoundError: source にレコードがない場合
        """
        if self._source is None:
            raise CapacityError(
                code=CapacityErrorCodes.NO_SOURCE,
                message="no capacity source configured",
            )
        record = await self._source.load_capacity(resource_id)
        if record is None:
            raise CapacityNotFoundError(resource_id)
        async with self._lock:
            await self._save(record)
        logger.info(
            "capacity_refreshed",
            resource_id=resource_id,
            count=record.current_count,
            max_count=record.max_count,
        )
        return record

    async def _seed(self, resource_id: str) -> CapacityRecord:
        if self._source is not None:
            record = await self._source.load_capacity(resource_id)
            if record is not None:
                return record
        return CapacityRecord(resource_id=resource_id, max_count=self._default_max)

    async def _load(self, resource_id: str) -> CapacityRecord | None:
        raw = await self._cache.get(capacity_key(resource_id))
        if raw is None:
            return None
        return CapacityRecord.from_json(raw)

    async def _save(self, record: CapacityRecord, ttl: float | None = None) -> None:
        record.last_updated = datetime.now(UTC)
        await self._cache.set(
            capacity_key(record.resource_id),
            record.to_json(),
            ttl=self._ttl if ttl is None else ttl,
        )
