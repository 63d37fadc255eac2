"""rxflow intake library."""

from .exceptions import IntakeError, IntakeErrorCodes
from .models import (
    Address,
    InsuranceInfo,
    IntakeResult,
    IntakeStatus,
    MedicationInfo,
    PatientInfo,
    PrescriberInfo,
    PrescriptionSubmission,
)
from .service import IntakeService, dedup_parts, new_prescription_id

__all__ = [
    "IntakeService",
    "IntakeResult",
    "IntakeStatus",
    "PrescriptionSubmission",
    "PatientInfo",
    "PrescriberInfo",
    "MedicationInfo",
    "InsuranceInfo",
    "Address",
    "IntakeError",
    "IntakeErrorCodes",
    "dedup_parts",
    "new_prescription_id",
]
