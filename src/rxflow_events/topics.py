"""ワークフロートピック定義"""

from __future__ import annotations

TOPIC_INTAKE_RECEIVED = "intake.received"
TOPIC_VALIDATION_COMPLETED = "validation.completed"
TOPIC_ENROLLMENT_COMPLETED = "enrollment.completed"
TOPIC_PHARMACY_SELECTED = "pharmacy.selected"
TOPIC_ADJUDICATION_COMPLETED = "adjudication.completed"
TOPIC_PAYMENT_LINK_CREATED = "payment.link.created"
TOPIC_PAYMENT_COMPLETED = "payment.completed"
TOPIC_SHIPMENT_LABEL_CREATED = "shipment.label.created"
TOPIC_SHIPMENT_DELIVERED = "shipment.delivered"
TOPIC_DEAD_LETTER_QUEUE = "dead_letter_queue"

# サーガの順序どおり
WORKFLOW_TOPICS: tuple[str, ...] = (
    TOPIC_INTAKE_RECEIVED,
    TOPIC_VALIDATION_COMPLETED,
    TOPIC_ENROLLMENT_COMPLETED,
    TOPIC_PHARMACY_SELECTED,
    TOPIC_ADJUDICATION_COMPLETED,
    TOPIC_PAYMENT_LINK_CREATED,
    TOPIC_PAYMENT_COMPLETED,
    TOPIC_SHIPMENT_LABEL_CREATED,
    TOPIC_SHIPMENT_DELIVERED,
)

ALL_TOPICS: frozenset[str] = frozenset(WORKFLOW_TOPICS) | {TOPIC_DEAD_LETTER_QUEUE}


def is_known_topic(name: str) -> bool:
    """トピック名が既知の語彙に含まれるか確認する（完全一致）。"""
    return name in ALL_TOPICS
