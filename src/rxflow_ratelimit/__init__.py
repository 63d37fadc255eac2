"""rxflow ratelimit library."""

from .exceptions import RateLimitError, RateLimitErrorCodes
from .limiter import RATE_LIMIT_KEY_PREFIX, RateLimiter, rate_limit_key
from .types import UNLIMITED, RateLimitStatus

__all__ = [
    "RateLimiter",
    "RateLimitStatus",
    "RateLimitError",
    "RateLimitErrorCodes",
    "RATE_LIMIT_KEY_PREFIX",
    "UNLIMITED",
    "rate_limit_key",
]
