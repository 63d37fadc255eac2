"""共通フィクスチャ"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from rxflow_cache import InMemoryCacheClient
from rxflow_capacity import CapacityTracker
from rxflow_events import EventEnvelope, create_event
from rxflow_messaging import ConsumedMessage, InMemoryBroker
from rxflow_stages import COLLECTION_PHARMACIES, COLLECTION_PRESCRIPTIONS, InMemoryDocumentStore


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def cache() -> InMemoryCacheClient:
    return InMemoryCacheClient()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def tracker(cache: InMemoryCacheClient) -> CapacityTracker:
    return CapacityTracker(cache)


@pytest.fixture
def make_message() -> Callable[..., ConsumedMessage]:
    """ConsumedMessage を組み立てるファクトリ。"""

    def _make(
        topic: str,
        envelope: EventEnvelope | None = None,
        value: bytes | None = None,
        offset: int = 0,
        key: bytes | None = None,
    ) -> ConsumedMessage:
        if value is None:
            value = (envelope or create_event("c1", "rx_1")).to_json()
        return ConsumedMessage(
            topic=topic,
            partition=0,
            offset=offset,
            value=value,
            key=key if key is not None else (envelope.subject_id.encode() if envelope else None),
        )

    return _make


def prescription_document(prescription_id: str = "rx_1", **overrides: Any) -> dict[str, Any]:
    document: dict[str, Any] = {
        "_id": prescription_id,
        "prescription_id": prescription_id,
        "status": "received",
        "patient_id": "pt_1",
        "patient": {"id": "pt_1", "first_name": "Ada", "last_name": "Lovelace", "date_of_birth": "1980-01-01"},
        "prescriber": {"npi": "1234567890", "first_name": "Grace", "last_name": "Hopper"},
        "medication": {"ndc": "00093-7146-56", "name": "Atorvastatin", "quantity": 30, "refills": 1},
        "date_written": "2026-01-02",
    }
    document.update(overrides)
    return document


@pytest.fixture
async def seeded_store(store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    """処方箋 rx_1 と稼働中の薬局 2 件を登録済みのストア。"""
    await store.insert(COLLECTION_PRESCRIPTIONS, prescription_document())
    await store.insert(COLLECTION_PHARMACIES, {"_id": "ph_1", "ncpdp_id": "NCPDP1", "active": True})
    await store.insert(COLLECTION_PHARMACIES, {"_id": "ph_2", "ncpdp_id": "NCPDP2", "active": True})
    return store


@pytest.fixture
def new_prescription() -> Callable[..., dict[str, Any]]:
    return prescription_document
