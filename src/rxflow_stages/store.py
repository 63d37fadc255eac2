"""ドキュメントストア抽象とインメモリ実装"""

from __future__ import annotations

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

COLLECTION_PRESCRIPTIONS = "prescriptions"
COLLECTION_PATIENTS = "patients"
COLLECTION_PHARMACIES = "pharmacies"
COLLECTION_ADJUDICATIONS = "adjudications"
COLLECTION_PAYMENTS = "payments"
COLLECTION_SHIPMENTS = "shipments"


class PrescriptionStatus(StrEnum):
    """処方箋ドキュメントの status 値。"""

    RECEIVED = "received"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation_failed"
    ENROLLED = "enrolled"
    PHARMACY_SELECTED = "pharmacy_selected"
    ADJUDICATED = "adjudicated"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_WAIVED = "payment_waived"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


# ワークフロー上の到達順。同順位は分岐（支払い要/不要）
_STATUS_RANK: dict[str, int] = {
    PrescriptionStatus.RECEIVED: 0,
    PrescriptionStatus.VALIDATED: 1,
    PrescriptionStatus.ENROLLED: 2,
    PrescriptionStatus.PHARMACY_SELECTED: 3,
    PrescriptionStatus.ADJUDICATED: 4,
    PrescriptionStatus.AWAITING_PAYMENT: 5,
    PrescriptionStatus.PAYMENT_WAIVED: 5,
    PrescriptionStatus.SHIPPED: 6,
    PrescriptionStatus.DELIVERED: 7,
}


def status_reached(current: str | None, target: PrescriptionStatus) -> bool:
    """current が target 以降の段階にあるか判定する。未知の status は False。"""
    if current is None or current not in _STATUS_RANK:
        return False
    return _STATUS_RANK[current] >= _STATUS_RANK[target]


class StoreError(Exception):
    """ドキュメントストアのエラー。"""

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


class StoreErrorCodes:
    """StoreError のエラーコード定数。"""

    DUPLICATE_KEY: str = "DUPLICATE_KEY"
    UNAVAILABLE: str = "UNAVAILABLE"


class DocumentStore(ABC):
    """コレクション単位のドキュメントストア。

    filter はフィールドの完全一致。ドキュメントの主キーは "_id"。
    """

    @abstractmethod
    async def find_one(
        self, collection: str, filter: Mapping[str, Any]
    ) -> dict[str, Any] | None: ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        """ドキュメントを挿入して _id を返す。_id が重複する場合は StoreError。"""
        ...

    @abstractmethod
    async def update(
        self, collection: str, filter: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> int:
        """最初に一致したドキュメントに changes を上書きし、更新件数（0 or 1）を返す。"""
        ...

    @abstractmethod
    async def upsert(
        self, collection: str, filter: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> str:
        """一致するドキュメントを更新し、なければ filter と changes から作成する。"""
        ...


def _matches(document: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    return all(document.get(k) == v for k, v in filter.items())


class InMemoryDocumentStore(DocumentStore):
    """テスト・ローカル実行用インメモリストア。読み書きはコピーで行う。"""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def find_one(
        self, collection: str, filter: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        with self._lock:
            for document in self._collection(collection).values():
                if _matches(document, filter):
                    return copy.deepcopy(document)
        return None

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            found = [
                copy.deepcopy(d)
                for d in self._collection(collection).values()
                if _matches(d, filter or {})
            ]
        return found if limit is None else found[:limit]

    async def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        doc = copy.deepcopy(dict(document))
        doc_id = str(doc.setdefault("_id", uuid.uuid4().hex))
        with self._lock:
            docs = self._collection(collection)
            if doc_id in docs:
                raise StoreError(
                    code=StoreErrorCodes.DUPLICATE_KEY,
                    message=f"document {doc_id} already exists in {collection}",
                )
            docs[doc_id] = doc
        return doc_id

    async def update(
        self, collection: str, filter: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> int:
        with self._lock:
            for document in self._collection(collection).values():
                if _matches(document, filter):
                    document.update(copy.deepcopy(dict(changes)))
                    return 1
        return 0

    async def upsert(
        self, collection: str, filter: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> str:
        with self._lock:
            docs = self._collection(collection)
            for doc_id, document in docs.items():
                if _matches(document, filter):
                    document.update(copy.deepcopy(dict(changes)))
                    return doc_id
            doc = {**copy.deepcopy(dict(filter)), **copy.deepcopy(dict(changes))}
            doc_id = str(doc.setdefault("_id", uuid.uuid4().hex))
            docs[doc_id] = doc
            return doc_id
