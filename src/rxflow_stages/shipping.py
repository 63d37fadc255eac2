"""出荷ラベル作成ステージ"""

from __future__ import annotations

import uuid

import structlog
from rxflow_events import (
    TOPIC_PAYMENT_COMPLETED,
    TOPIC_SHIPMENT_LABEL_CREATED,
    EventEnvelope,
    StagePayload,
)
from rxflow_messaging import EventProducer

from .base import StageHandler, now_iso
from .store import COLLECTION_SHIPMENTS, DocumentStore, PrescriptionStatus, status_reached

logger = structlog.get_logger(__name__)

DEFAULT_LABEL_BASE_URL = "https://labels.example.com/"


def new_tracking_number() -> str:
    return "TRK" + uuid.uuid4().hex[:12].upper()


class ShippingStage(StageHandler):
    """payment.completed -> shipment.label.created"""

    consumes = TOPIC_PAYMENT_COMPLETED

    def __init__(
        self,
        store: DocumentStore,
        producer: EventProducer,
        label_base_url: str = DEFAULT_LABEL_BASE_URL,
    ) -> None:
        super().__init__(store, producer)
        self._label_base_url = label_base_url

    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        prescription = await self.load_prescription(envelope.subject_id)
        patient_id = prescription.get("patient_id", "")

        if status_reached(prescription.get("status"), PrescriptionStatus.SHIPPED):
            tracking_number = prescription["tracking_number"]
            label_url = prescription.get("label_url", "")
            shipped_at = prescription.get("shipped_at") or now_iso()
        else:
            tracking_number = new_tracking_number()
            label_url = self._label_base_url + tracking_number
            shipped_at = now_iso()
            await self._call_store(
                "store shipment",
                self._store.upsert(
                    COLLECTION_SHIPMENTS,
                    {"prescription_id": envelope.subject_id},
                    {
                        "patient_id": patient_id,
                        "tracking_number": tracking_number,
                        "label_url": label_url,
                        "status": "label_created",
                        "created_at": shipped_at,
                    },
                ),
            )
            await self.update_prescription(
                envelope.subject_id,
                {
                    "status": PrescriptionStatus.SHIPPED.value,
                    "tracking_number": tracking_number,
                    "label_url": label_url,
                    "shipped_at": shipped_at,
                },
            )
            logger.info("shipment_label_created", tracking_number=tracking_number)

        await self.emit(
            envelope,
            TOPIC_SHIPMENT_LABEL_CREATED,
            {
                "patient_id": patient_id,
                "tracking_number": tracking_number,
                "label_url": label_url,
                "created_at": shipped_at,
            },
        )
