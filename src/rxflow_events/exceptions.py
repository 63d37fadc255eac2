"""events ライブラリの例外型定義"""

from __future__ import annotations


class EnvelopeError(Exception):
    """イベントエンベロープのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class EnvelopeErrorCodes:
    """EnvelopeError のエラーコード定数。"""

    DECODE_FAILED: str = "DECODE_FAILED"
    MISSING_FIELD: str = "MISSING_FIELD"
    SCHEMA_MISMATCH: str = "SCHEMA_MISMATCH"
