"""支払いステージ"""

from __future__ import annotations

import uuid
from typing import Any, cast

import structlog
from rxflow_events import (
    TOPIC_ADJUDICATION_COMPLETED,
    TOPIC_PAYMENT_COMPLETED,
    TOPIC_PAYMENT_LINK_CREATED,
    AdjudicationCompletedPayload,
    EventEnvelope,
    StagePayload,
)
from rxflow_messaging import EventProducer

from .base import StageHandler, now_iso
from .store import COLLECTION_PAYMENTS, DocumentStore, PrescriptionStatus, status_reached

logger = structlog.get_logger(__name__)

DEFAULT_PAYMENT_BASE_URL = "https://pay.example.com/"


class PaymentStage(StageHandler):
    """adjudication.completed -> payment.link.created（自己負担あり）
    または payment.completed（自己負担 0、支払い免除）
    """

    consumes = TOPIC_ADJUDICATION_COMPLETED

    def __init__(
        self,
        store: DocumentStore,
        producer: EventProducer,
        payment_base_url: str = DEFAULT_PAYMENT_BASE_URL,
    ) -> None:
        super().__init__(store, producer)
        self._payment_base_url = payment_base_url

    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        adjudication = cast(AdjudicationCompletedPayload, payload)
        prescription = await self.load_prescription(envelope.subject_id)
        patient_id = prescription.get("patient_id", "")

        payment: dict[str, Any] | None = None
        if status_reached(prescription.get("status"), PrescriptionStatus.AWAITING_PAYMENT):
            payment = prescription.get("payment")
        if payment is None:
            payment = await self._record_payment(envelope.subject_id, patient_id, adjudication)

        if payment["waived"]:
            await self.emit(
                envelope,
                TOPIC_PAYMENT_COMPLETED,
                {
                    "patient_id": patient_id,
                    "amount": 0.0,
                    "status": "waived",
                    "completed_at": payment["created_at"],
                },
            )
        else:
            await self.emit(
                envelope,
                TOPIC_PAYMENT_LINK_CREATED,
                {
                    "patient_id": patient_id,
                    "amount": payment["amount"],
                    "payment_link_id": payment["payment_link_id"],
                    "payment_link_url": payment["payment_link_url"],
                    "created_at": payment["created_at"],
                },
            )

    async def _record_payment(
        self,
        prescription_id: str,
        patient_id: str,
        payload: AdjudicationCompletedPayload,
    ) -> dict[str, Any]:
        copay = payload.adjudication_result.copay_amount
        created_at = now_iso()
        if copay <= 0:
            payment: dict[str, Any] = {"waived": True, "amount": 0.0, "created_at": created_at}
            status = PrescriptionStatus.PAYMENT_WAIVED
            logger.info("payment_waived")
        else:
            link_id = uuid.uuid4().hex
            payment = {
                "waived": False,
                "amount": copay,
                "payment_link_id": link_id,
                "payment_link_url": self._payment_base_url + link_id,
                "created_at": created_at,
            }
            status = PrescriptionStatus.AWAITING_PAYMENT
            await self._call_store(
                "store payment",
                self._store.upsert(
                    COLLECTION_PAYMENTS,
                    {"prescription_id": prescription_id},
                    {
                        "patient_id": patient_id,
                        "amount": copay,
                        "payment_link_id": link_id,
                        "payment_link_url": payment["payment_link_url"],
                        "status": "pending",
                        "created_at": created_at,
                    },
                ),
            )
            logger.info("payment_link_created", amount=copay, payment_link_id=link_id)

        await self.update_prescription(
            prescription_id, {"status": status.value, "payment": payment}
        )
        return payment
