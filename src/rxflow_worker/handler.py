"""Handler 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rxflow_messaging import ConsumedMessage

from .exceptions import HandlerError, HandlerErrorCodes

__all__ = ["Handler", "HandlerError", "HandlerErrorCodes"]


class Handler(ABC):
    """1 トピック分のメッセージを処理するハンドラ。

    handle が正常に戻った時点で、状態変更の永続化と後続イベントの発行は
    完了していなければならない。失敗は HandlerError を送出して通知する。
    同じメッセージが再配送されうるため、handle は冪等であること。
    """

    @abstractmethod
    def topic(self) -> str:
        """このハンドラが処理するトピック名。"""
        ...

    @abstractmethod
    async def handle(self, message: ConsumedMessage) -> None:
        """メッセージを処理する。"""
        ...
