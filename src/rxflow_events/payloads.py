"""トピックごとの型付きペイロード（pydantic BaseModel）"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, ValidationError

from .envelope import EventEnvelope
from .exceptions import EnvelopeError, EnvelopeErrorCodes
from .topics import (
    TOPIC_ADJUDICATION_COMPLETED,
    TOPIC_ENROLLMENT_COMPLETED,
    TOPIC_INTAKE_RECEIVED,
    TOPIC_PAYMENT_COMPLETED,
    TOPIC_PAYMENT_LINK_CREATED,
    TOPIC_PHARMACY_SELECTED,
    TOPIC_SHIPMENT_DELIVERED,
    TOPIC_SHIPMENT_LABEL_CREATED,
    TOPIC_VALIDATION_COMPLETED,
)


class StagePayload(BaseModel):
    """ステージペイロードの基底。スキーマ外のフィールドも保持する。"""

    model_config = ConfigDict(extra="allow")


class IntakeReceivedPayload(StagePayload):
    """intake.received のペイロード。"""

    patient_id: str = ""
    drug_ndc: str = ""


class ValidationCompletedPayload(StagePayload):
    """validation.completed のペイロード。"""

    patient_id: str = ""
    validated_at: str


class EnrollmentCompletedPayload(StagePayload):
    """enrollment.completed のペイロード。"""

    patient_id: str = ""
    enrolled_at: str


class PharmacySelectedPayload(StagePayload):
    """pharmacy.selected のペイロード。"""

    patient_id: str = ""
    pharmacy_id: str
    pharmacy_ncpdp_id: str = ""
    selected_at: str


class AdjudicationResult(BaseModel):
    """保険審査結果。"""

    status: str
    copay_amount: float
    insurance_pays: float
    total_cost: float


class AdjudicationCompletedPayload(StagePayload):
    """adjudication.completed のペイロード。"""

    patient_id: str = ""
    pharmacy_id: str = ""
    adjudication_result: AdjudicationResult
    adjudicated_at: str


class PaymentLinkCreatedPayload(StagePayload):
    """payment.link.created のペイロード。"""

    patient_id: str = ""
    amount: float
    payment_link_id: str
    payment_link_url: str


class PaymentCompletedPayload(StagePayload):
    """payment.completed のペイロード。"""

    patient_id: str = ""
    amount: float
    status: str
    completed_at: str


class ShipmentLabelCreatedPayload(StagePayload):
    """shipment.label.created のペイロード。"""

    patient_id: str = ""
    tracking_number: str
    label_url: str = ""


class ShipmentDeliveredPayload(StagePayload):
    """shipment.delivered のペイロード。"""

    patient_id: str = ""
    tracking_number: str
    delivered_at: str


PAYLOAD_MODELS: dict[str, type[StagePayload]] = {
    TOPIC_INTAKE_RECEIVED: IntakeReceivedPayload,
    TOPIC_VALIDATION_COMPLETED: ValidationCompletedPayload,
    TOPIC_ENROLLMENT_COMPLETED: EnrollmentCompletedPayload,
    TOPIC_PHARMACY_SELECTED: PharmacySelectedPayload,
    TOPIC_ADJUDICATION_COMPLETED: AdjudicationCompletedPayload,
    TOPIC_PAYMENT_LINK_CREATED: PaymentLinkCreatedPayload,
    TOPIC_PAYMENT_COMPLETED: PaymentCompletedPayload,
    TOPIC_SHIPMENT_LABEL_CREATED: ShipmentLabelCreatedPayload,
    TOPIC_SHIPMENT_DELIVERED: ShipmentDeliveredPayload,
}


def parse_payload(topic: str, envelope: EventEnvelope) -> StagePayload:
    """エンベロープの payload をトピックのスキーマで検証する。

    未知のトピックは StagePayload（オープンな辞書）として扱う。
    スキーマ不一致は EnvelopeError。
    """
    model = PAYLOAD_MODELS.get(topic, StagePayload)
    try:
        return model.model_validate(dict(envelope.payload))
    except ValidationError as e:
        raise EnvelopeError(
            code=EnvelopeErrorCodes.SCHEMA_MISMATCH,
            message=f"Payload does not match schema for {topic}: {e}",
            cause=e,
        ) from e
