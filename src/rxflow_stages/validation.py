"""処方箋の検証ステージ"""

from __future__ import annotations

from typing import Any

import structlog
from rxflow_events import (
    TOPIC_INTAKE_RECEIVED,
    TOPIC_VALIDATION_COMPLETED,
    EventEnvelope,
    StagePayload,
)

from .base import StageHandler, now_iso
from .store import PrescriptionStatus, status_reached

logger = structlog.get_logger(__name__)


def validate_prescription(document: dict[str, Any]) -> list[str]:
    """必須項目の欠落を列挙する。空なら有効。"""
    errors: list[str] = []
    patient = document.get("patient") or {}
    has_name = bool(patient.get("first_name") and patient.get("last_name"))
    if not (document.get("patient_id") or has_name):
        errors.append("patient is required")
    prescriber = document.get("prescriber") or {}
    if not prescriber.get("npi"):
        errors.append("prescriber.npi is required")
    medication = document.get("medication") or {}
    if not medication.get("ndc"):
        errors.append("medication.ndc is required")
    if not medication.get("quantity"):
        errors.append("medication.quantity is required")
    return errors


class ValidationStage(StageHandler):
    """intake.received -> validation.completed（有効な場合のみ）"""

    consumes = TOPIC_INTAKE_RECEIVED

    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        prescription = await self.load_prescription(envelope.subject_id)
        status = prescription.get("status")

        if status == PrescriptionStatus.VALIDATION_FAILED:
            logger.info("validation_already_failed")
            return
        if status_reached(status, PrescriptionStatus.VALIDATED):
            validated_at = prescription.get("validated_at") or now_iso()
        else:
            errors = validate_prescription(prescription)
            if errors:
                await self.update_prescription(
                    envelope.subject_id,
                    {
                        "status": PrescriptionStatus.VALIDATION_FAILED.value,
                        "validation_errors": errors,
                    },
                )
                logger.warning("prescription_invalid", validation_errors=errors)
                return
            validated_at = now_iso()
            await self.update_prescription(
                envelope.subject_id,
                {
                    "status": PrescriptionStatus.VALIDATED.value,
                    "validation_errors": [],
                    "validated_at": validated_at,
                },
            )

        await self.emit(
            envelope,
            TOPIC_VALIDATION_COMPLETED,
            {
                "patient_id": prescription.get("patient_id", ""),
                "validated_at": validated_at,
            },
        )
