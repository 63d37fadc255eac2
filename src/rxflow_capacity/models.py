"""capacity データモデル"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .exceptions import CapacityError, CapacityErrorCodes


@dataclass
class CapacityRecord:
    """リソース（薬局）ごとのキャパシティ。"""

    resource_id: str
    current_count: int = 0
    max_count: int = 100
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def utilization(self) -> float:
        """current_count / max_count。max_count が 0 の場合は 0。"""
        if self.max_count <= 0:
            return 0.0
        return self.current_count / self.max_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "current_count": self.current_count,
            "max_count": self.max_count,
            "utilization": self.utilization,
            "last_updated": self.last_updated.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> CapacityRecord:
        """JSON からレコードを復元する。

        Raises:
            CapacityError: JSON が壊れている、または必須フィールドがない場合
        """
        try:
            data = json.loads(raw)
            return cls(
                resource_id=str(data["resource_id"]),
                current_count=int(data["current_count"]),
                max_count=int(data["max_count"]),
                last_updated=datetime.fromisoformat(data["last_updated"]),
            )
        except (ValueError, TypeError, KeyError) as e:
            raise CapacityError(
                code=CapacityErrorCodes.CORRUPT_RECORD,
                message=f"invalid capacity record: {e}",
                cause=e,
            ) from e
