"""rxflow dedup library."""

from .guard import DEDUP_KEY_PREFIX, DEFAULT_DEDUP_TTL, DeduplicationGuard, generate_dedup_key
from .models import DedupResult, DedupStatus

__all__ = [
    "DeduplicationGuard",
    "DedupResult",
    "DedupStatus",
    "generate_dedup_key",
    "DEDUP_KEY_PREFIX",
    "DEFAULT_DEDUP_TTL",
]
