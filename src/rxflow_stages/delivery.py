"""配達完了ステージ"""

from __future__ import annotations

from typing import cast

import structlog
from rxflow_events import (
    TOPIC_SHIPMENT_DELIVERED,
    TOPIC_SHIPMENT_LABEL_CREATED,
    EventEnvelope,
    ShipmentLabelCreatedPayload,
    StagePayload,
)

from .base import StageHandler, now_iso
from .store import COLLECTION_SHIPMENTS, PrescriptionStatus, status_reached

logger = structlog.get_logger(__name__)


class DeliveryStage(StageHandler):
    """shipment.label.created -> shipment.delivered（ワークフロー終端）"""

    consumes = TOPIC_SHIPMENT_LABEL_CREATED

    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        prescription = await self.load_prescription(envelope.subject_id)
        tracking_number = cast(ShipmentLabelCreatedPayload, payload).tracking_number

        if status_reached(prescription.get("status"), PrescriptionStatus.DELIVERED):
            delivered_at = prescription.get("delivered_at") or now_iso()
        else:
            delivered_at = now_iso()
            updated = await self._call_store(
                "update shipment",
                self._store.update(
                    COLLECTION_SHIPMENTS,
                    {"prescription_id": envelope.subject_id},
                    {"status": "delivered", "delivered_at": delivered_at},
                ),
            )
            if updated == 0:
                logger.warning("shipment_record_missing", tracking_number=tracking_number)
            await self.update_prescription(
                envelope.subject_id,
                {"status": PrescriptionStatus.DELIVERED.value, "delivered_at": delivered_at},
            )
            logger.info("prescription_delivered", tracking_number=tracking_number)

        await self.emit(
            envelope,
            TOPIC_SHIPMENT_DELIVERED,
            {
                "patient_id": prescription.get("patient_id", ""),
                "tracking_number": tracking_number,
                "delivered_at": delivered_at,
            },
        )
