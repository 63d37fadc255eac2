"""患者登録ステージ"""

from __future__ import annotations

import structlog
from rxflow_events import (
    TOPIC_ENROLLMENT_COMPLETED,
    TOPIC_VALIDATION_COMPLETED,
    EventEnvelope,
    StagePayload,
)

from .base import StageHandler, now_iso
from .store import COLLECTION_PATIENTS, PrescriptionStatus, status_reached

logger = structlog.get_logger(__name__)


class EnrollmentStage(StageHandler):
    """validation.completed -> enrollment.completed

    患者ドキュメントを登録済みにし、処方箋を enrolled にする。
    """

    consumes = TOPIC_VALIDATION_COMPLETED

    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        prescription = await self.load_prescription(envelope.subject_id)
        patient_id = prescription.get("patient_id") or getattr(payload, "patient_id", "")

        if status_reached(prescription.get("status"), PrescriptionStatus.ENROLLED):
            enrolled_at = prescription.get("enrolled_at") or now_iso()
        else:
            enrolled_at = now_iso()
            if patient_id:
                patient = await self._call_store(
                    "find patient",
                    self._store.find_one(COLLECTION_PATIENTS, {"_id": patient_id}),
                )
                if patient is None or not patient.get("enrolled"):
                    await self._call_store(
                        "enroll patient",
                        self._store.upsert(
                            COLLECTION_PATIENTS,
                            {"_id": patient_id},
                            {"enrolled": True, "enrolled_at": enrolled_at, "updated_at": enrolled_at},
                        ),
                    )
                    logger.info("patient_enrolled", patient_id=patient_id)
            await self.update_prescription(
                envelope.subject_id,
                {"status": PrescriptionStatus.ENROLLED.value, "enrolled_at": enrolled_at},
            )

        await self.emit(
            envelope,
            TOPIC_ENROLLMENT_COMPLETED,
            {"patient_id": patient_id, "enrolled_at": enrolled_at},
        )
