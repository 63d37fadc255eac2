"""worker ライブラリの例外型定義"""

from __future__ import annotations


class WorkerError(Exception):
    """worker ライブラリのエラー基底クラス。"""

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


class InvalidHandlerError(WorkerError):
    """ハンドラが None、またはトピックが空の場合のエラー。"""

    def __init__(self, message: str) -> None:
        super().__init__(code=WorkerErrorCodes.INVALID_HANDLER, message=message)


class WorkerErrorCodes:
    """WorkerError のエラーコード定数。"""

    INVALID_HANDLER: str = "INVALID_HANDLER"
    SUBSCRIBE_FAILED: str = "SUBSCRIBE_FAILED"


class HandlerError(Exception):
    """ハンドラ処理失敗。コンシューマーループはこれを受けてデッドレターに送る。"""

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


class HandlerErrorCodes:
    """HandlerError のエラーコード定数。"""

    DECODE_FAILED: str = "DECODE_FAILED"
    NOT_FOUND: str = "NOT_FOUND"
    NO_CAPACITY: str = "NO_CAPACITY"
    STORE_FAILED: str = "STORE_FAILED"
    PUBLISH_FAILED: str = "PUBLISH_FAILED"
