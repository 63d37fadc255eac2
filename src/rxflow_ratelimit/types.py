"""Rate limit types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

UNLIMITED = -1


@dataclass(frozen=True)
class RateLimitStatus:
    """Rate limit check result.

    remaining is -1 when no limit applies (limit <= 0, or the cache was
    unavailable and the check failed open). reset_at is an estimate of
    now + window, not the counter's actual expiry.
    """

    allowed: bool
    remaining: int
    reset_at: datetime
    degraded: bool = False
