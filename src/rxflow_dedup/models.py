"""dedup データモデル"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DedupStatus(Enum):
    """重複判定の結果。"""

    FRESH = "fresh"
    DUPLICATE = "duplicate"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class DedupResult:
    """check_and_reserve の結果。"""

    key: str
    status: DedupStatus

    @property
    def is_duplicate(self) -> bool:
        return self.status is DedupStatus.DUPLICATE

    @property
    def is_unavailable(self) -> bool:
        return self.status is DedupStatus.UNAVAILABLE

    def admits(self, fail_open: bool = True) -> bool:
        """処理を進めてよいか判定する。

        Args:
            fail_open: キャッシュ不通時 (UNAVAILABLE) に新規として扱うか

        Returns:
            FRESH なら True、DUPLICATE なら False、UNAVAILABLE なら fail_open の値
        """
        if self.status is DedupStatus.FRESH:
            return True
        if self.status is DedupStatus.DUPLICATE:
            return False
        return fail_open
