"""CacheClient 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CacheClient(ABC):
    """キャッシュクライアント抽象基底クラス。

    重複排除・レート制限・キャパシティ追跡はこのインターフェースの
    アトミック操作（set_nx, incr）だけに依存する。
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """キーに対応する値を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        """キーと値を保存する。ttl 指定時は有効期限付き（秒）。"""
        ...

    @abstractmethod
    async def set_nx(self, key: str, value: str, ttl: float) -> bool:
        """キーが存在しない場合のみ値を設定する（アトミック）。設定できたら True。"""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """キーが存在するか確認する。"""
        ...

    @abstractmethod
    async def incr(self, key: str) -> int:
        """キーの値をアトミックに 1 増やし、増加後の値を返す。キーがなければ 1。"""
        ...

    @abstractmethod
    async def expire(self, key: str, ttl: float) -> bool:
        """キーに有効期限を設定する。キーが存在しなければ False。"""
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """キーを削除し、削除した件数を返す。"""
        ...

    async def close(self) -> None:
        """接続を閉じる。"""
        return None
