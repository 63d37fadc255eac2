"""rxflow events library."""

from .envelope import RESERVED_FIELDS, EventEnvelope, create_event, extract_correlation_id
from .exceptions import EnvelopeError, EnvelopeErrorCodes
from .generator import (
    X_CORRELATION_ID,
    generate_correlation_id,
    generate_event_id,
    utc_timestamp,
)
from .payloads import (
    PAYLOAD_MODELS,
    AdjudicationCompletedPayload,
    AdjudicationResult,
    EnrollmentCompletedPayload,
    IntakeReceivedPayload,
    PaymentCompletedPayload,
    PaymentLinkCreatedPayload,
    PharmacySelectedPayload,
    ShipmentDeliveredPayload,
    ShipmentLabelCreatedPayload,
    StagePayload,
    ValidationCompletedPayload,
    parse_payload,
)
from .topics import (
    ALL_TOPICS,
    TOPIC_ADJUDICATION_COMPLETED,
    TOPIC_DEAD_LETTER_QUEUE,
    TOPIC_ENROLLMENT_COMPLETED,
    TOPIC_INTAKE_RECEIVED,
    TOPIC_PAYMENT_COMPLETED,
    TOPIC_PAYMENT_LINK_CREATED,
    TOPIC_PHARMACY_SELECTED,
    TOPIC_SHIPMENT_DELIVERED,
    TOPIC_SHIPMENT_LABEL_CREATED,
    TOPIC_VALIDATION_COMPLETED,
    WORKFLOW_TOPICS,
    is_known_topic,
)

__all__ = [
    "EventEnvelope",
    "RESERVED_FIELDS",
    "create_event",
    "extract_correlation_id",
    "EnvelopeError",
    "EnvelopeErrorCodes",
    "X_CORRELATION_ID",
    "generate_correlation_id",
    "generate_event_id",
    "utc_timestamp",
    "StagePayload",
    "IntakeReceivedPayload",
    "ValidationCompletedPayload",
    "EnrollmentCompletedPayload",
    "PharmacySelectedPayload",
    "AdjudicationResult",
    "AdjudicationCompletedPayload",
    "PaymentLinkCreatedPayload",
    "PaymentCompletedPayload",
    "ShipmentLabelCreatedPayload",
    "ShipmentDeliveredPayload",
    "PAYLOAD_MODELS",
    "parse_payload",
    "TOPIC_INTAKE_RECEIVED",
    "TOPIC_VALIDATION_COMPLETED",
    "TOPIC_ENROLLMENT_COMPLETED",
    "TOPIC_PHARMACY_SELECTED",
    "TOPIC_ADJUDICATION_COMPLETED",
    "TOPIC_PAYMENT_LINK_CREATED",
    "TOPIC_PAYMENT_COMPLETED",
    "TOPIC_SHIPMENT_LABEL_CREATED",
    "TOPIC_SHIPMENT_DELIVERED",
    "TOPIC_DEAD_LETTER_QUEUE",
    "WORKFLOW_TOPICS",
    "ALL_TOPICS",
    "is_known_topic",
]
