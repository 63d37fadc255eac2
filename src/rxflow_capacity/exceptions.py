"""capacity ライブラリの例外型定義"""

from __future__ import annotations


class CapacityError(Exception):
    """capacity ライブラリのエラー基底クラス。"""

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


class CapacityNotFoundError(CapacityError):
    """キャパシティレコードが存在しない場合のエラー。"""

    def __init__(self, resource_id: str) -> None:
        super().__init__(
            code=CapacityErrorCodes.NOT_FOUND,
            message=f"capacity record not found: {resource_id}",
        )
        self.resource_id = resource_id


class CapacityErrorCodes:
    """エラーコード定数。"""

    NOT_FOUND: str = "NOT_FOUND"
    CORRUPT_RECORD: str = "CORRUPT_RECORD"
    NO_SOURCE: str = "NO_SOURCE"
