"""Fixed-window rate limiter backed by a CacheClient."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import structlog
from rxflow_cache import CacheClient, CacheError

from .exceptions import RateLimitError, RateLimitErrorCodes
from .types import UNLIMITED, RateLimitStatus

logger = structlog.get_logger(__name__)

RATE_LIMIT_KEY_PREFIX = "rate_limit:count:"


def rate_limit_key(identifier: str) -> str:
    return RATE_LIMIT_KEY_PREFIX + identifier


class RateLimiter:
    """Fixed-window counter rate limiter.

    The counter is incremented with INCR and the window TTL is attached only
    by the increment that returns 1, so a window never slides forward.
    """

    def __init__(
        self,
        cache: CacheClient,
        default_limit: int = 60,
        default_window: float = 60.0,
    ) -> None:
        if default_window <= 0:
            raise RateLimitError(
                code=RateLimitErrorCodes.INVALID_WINDOW,
                message=f"window must be positive, got {default_window}",
            )
        self._cache = cache
        self._default_limit = default_limit
        self._default_window = default_window

    async def check_limit(
        self,
        identifier: str,
        limit: int | None = None,
        window: float | None = None,
        *,
        fail_open: bool = True,
    ) -> RateLimitStatus:
        """Count one request for identifier and report whether it is allowed."""
        if not identifier:
            raise RateLimitError(
                code=RateLimitErrorCodes.INVALID_IDENTIFIER,
                message="identifier must not be empty",
            )
        limit = self._default_limit if limit is None else limit
        window = self._default_window if window is None else window
        if window <= 0:
            raise RateLimitError(
                code=RateLimitErrorCodes.INVALID_WINDOW,
                message=f"window must be positive, got {window}",
            )

        reset_at = datetime.now(UTC) + timedelta(seconds=window)
        if limit <= 0:
            return RateLimitStatus(allowed=True, remaining=UNLIMITED, reset_at=reset_at)

        key = rate_limit_key(identifier)
        try:
            count = await self._cache.incr(key)
            if count == 1:
                await self._start_window(key, window)
        except CacheError as e:
            logger.warning(
                "rate_limit_cache_unavailable",
                identifier=identifier,
                fail_open=fail_open,
                error=str(e),
            )
            if fail_open:
                return RateLimitStatus(
                    allowed=True, remaining=UNLIMITED, reset_at=reset_at, degraded=True
                )
            return RateLimitStatus(allowed=False, remaining=0, reset_at=reset_at, degraded=True)

        allowed = count <= limit
        if not allowed:
            logger.info("rate_limit_exceeded", identifier=identifier, count=count, limit=limit)
        return RateLimitStatus(
            allowed=allowed,
            remaining=max(0, limit - count),
            reset_at=reset_at,
        )

    async def _start_window(self, key: str, window: float) -> None:
        """Attach the window TTL to a fresh counter.

        A counter left without a TTL would never reset, so it is dropped when
        EXPIRE fails and the next request starts a new window.
        """
        try:
            await self._cache.expire(key, window)
        except CacheError:
            try:
                await self._cache.delete(key)
            except CacheError as e:
                logger.error("rate_limit_counter_orphaned", key=key, error=str(e))
            raise

    async def reset(self, identifier: str) -> bool:
        """Delete the counter for identifier. Returns True if one existed."""
        return await self._cache.delete(rate_limit_key(identifier)) > 0
