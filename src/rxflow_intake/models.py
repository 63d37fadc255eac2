"""intake データモデル"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class Address(BaseModel):
    """住所。"""

    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class PatientInfo(BaseModel):
    """患者情報。"""

    id: str = ""
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: str = Field(min_length=1)
    address: Address | None = None
    phone: str = ""


class PrescriberInfo(BaseModel):
    """処方医情報。"""

    id: str = ""
    npi: str = Field(min_length=1)
    dea: str = ""
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class MedicationInfo(BaseModel):
    """薬剤情報。"""

    ndc: str = Field(min_length=1)
    name: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    refills: int = Field(default=0, ge=0)
    dosage: str = ""
    directions: str = ""


class InsuranceInfo(BaseModel):
    """保険情報。"""

    bin: str = ""
    pcn: str = ""
    group_id: str = ""
    member_id: str = ""
    plan_name: str = ""


class PrescriptionSubmission(BaseModel):
    """外部パーサーが生成した処方箋レコード。"""

    prescription_id: str = ""
    patient: PatientInfo
    prescriber: PrescriberInfo
    medication: MedicationInfo
    insurance: InsuranceInfo | None = None
    date_written: str = ""


class IntakeStatus(Enum):
    """投入結果。"""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class IntakeResult:
    """IntakeService.submit の結果。ACCEPTED 以外では ID は空。"""

    status: IntakeStatus
    prescription_id: str = ""
    correlation_id: str = ""
    event_id: str = ""
    dedup_key: str = ""

    @property
    def accepted(self) -> bool:
        return self.status is IntakeStatus.ACCEPTED
