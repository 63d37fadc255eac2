"""intake ライブラリの例外型定義"""

from __future__ import annotations


class IntakeError(Exception):
    """intake ライブラリのエラー基底クラス。"""

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


class IntakeErrorCodes:
    """IntakeError のエラーコード定数。"""

    STORE_FAILED: str = "STORE_FAILED"
    PUBLISH_FAILED: str = "PUBLISH_FAILED"
