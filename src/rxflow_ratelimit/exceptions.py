"""Rate limit exceptions."""

from __future__ import annotations


class RateLimitError(Exception):
    """Rate limit error."""

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


class RateLimitErrorCodes:
    """Error code constants."""

    INVALID_IDENTIFIER: str = "INVALID_IDENTIFIER"
    INVALID_WINDOW: str = "INVALID_WINDOW"
