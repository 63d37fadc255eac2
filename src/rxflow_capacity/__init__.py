"""rxflow capacity library."""

from .exceptions import CapacityError, CapacityErrorCodes, CapacityNotFoundError
from .models import CapacityRecord
from .tracker import (
    CAPACITY_KEY_PREFIX,
    CapacitySource,
    CapacityTracker,
    capacity_key,
)

__all__ = [
    "CapacityTracker",
    "CapacitySource",
    "CapacityRecord",
    "CapacityError",
    "CapacityErrorCodes",
    "CapacityNotFoundError",
    "CAPACITY_KEY_PREFIX",
    "capacity_key",
]
