"""保険審査ステージ"""

from __future__ import annotations

import structlog
from rxflow_events import (
    TOPIC_ADJUDICATION_COMPLETED,
    TOPIC_PHARMACY_SELECTED,
    AdjudicationResult,
    EventEnvelope,
    StagePayload,
)
from rxflow_messaging import EventProducer

from .base import StageHandler, now_iso
from .store import COLLECTION_ADJUDICATIONS, DocumentStore, PrescriptionStatus, status_reached

logger = structlog.get_logger(__name__)

DEFAULT_TOTAL_COST = 200.0
DEFAULT_COPAY = 25.0


class AdjudicationStage(StageHandler):
    """pharmacy.selected -> adjudication.completed

    保険会社連携は外部協力者の責務のため、固定の審査結果（承認）を返す。
    """

    consumes = TOPIC_PHARMACY_SELECTED

    def __init__(
        self,
        store: DocumentStore,
        producer: EventProducer,
        total_cost: float = DEFAULT_TOTAL_COST,
        copay_amount: float = DEFAULT_COPAY,
    ) -> None:
        super().__init__(store, producer)
        if copay_amount < 0 or copay_amount > total_cost:
            raise ValueError("copay_amount must be between 0 and total_cost")
        self._total_cost = total_cost
        self._copay_amount = copay_amount

    def adjudicate(self) -> AdjudicationResult:
        return AdjudicationResult(
            status="approved",
            copay_amount=self._copay_amount,
            insurance_pays=self._total_cost - self._copay_amount,
            total_cost=self._total_cost,
        )

    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        prescription = await self.load_prescription(envelope.subject_id)
        pharmacy_id = getattr(payload, "pharmacy_id", "") or prescription.get("pharmacy_id", "")
        patient_id = prescription.get("patient_id", "")

        if status_reached(prescription.get("status"), PrescriptionStatus.ADJUDICATED):
            result = AdjudicationResult.model_validate(prescription["adjudication_result"])
            adjudicated_at = prescription.get("adjudicated_at") or now_iso()
        else:
            result = self.adjudicate()
            adjudicated_at = now_iso()
            await self._call_store(
                "store adjudication",
                self._store.upsert(
                    COLLECTION_ADJUDICATIONS,
                    {"prescription_id": envelope.subject_id},
                    {
                        "patient_id": patient_id,
                        "pharmacy_id": pharmacy_id,
                        "result": result.model_dump(),
                        "created_at": adjudicated_at,
                    },
                ),
            )
            await self.update_prescription(
                envelope.subject_id,
                {
                    "status": PrescriptionStatus.ADJUDICATED.value,
                    "adjudication_result": result.model_dump(),
                    "adjudicated_at": adjudicated_at,
                },
            )
            logger.info(
                "prescription_adjudicated",
                status=result.status,
                copay_amount=result.copay_amount,
            )

        await self.emit(
            envelope,
            TOPIC_ADJUDICATION_COMPLETED,
            {
                "patient_id": patient_id,
                "pharmacy_id": pharmacy_id,
                "adjudication_result": result.model_dump(),
                "adjudicated_at": adjudicated_at,
            },
        )
