"""薬局選択ステージ"""

from __future__ import annotations

from typing import Any

import structlog
from rxflow_cache import CacheError
from rxflow_capacity import CapacityError, CapacityTracker
from rxflow_events import (
    TOPIC_ENROLLMENT_COMPLETED,
    TOPIC_PHARMACY_SELECTED,
    EventEnvelope,
    StagePayload,
)
from rxflow_messaging import EventProducer
from rxflow_worker import HandlerError, HandlerErrorCodes

from .base import StageHandler, now_iso
from .store import COLLECTION_PHARMACIES, DocumentStore, PrescriptionStatus, status_reached

logger = structlog.get_logger(__name__)


class RoutingStage(StageHandler):
    """enrollment.completed -> pharmacy.selected

    稼働中の薬局のうち、キャパシティに空きがある最初の薬局を選ぶ。
    キャパシティの加算は 1 処方箋につき 1 回で、処方箋の更新に失敗した
    場合は取り消す。キャッシュ障害時はキャパシティ判定を省略する。
    """

    consumes = TOPIC_ENROLLMENT_COMPLETED

    def __init__(
        self,
        store: DocumentStore,
        producer: EventProducer,
        tracker: CapacityTracker | None = None,
    ) -> None:
        super().__init__(store, producer)
        self._tracker = tracker

    async def process(self, envelope: EventEnvelope, payload: StagePayload) -> None:
        prescription = await self.load_prescription(envelope.subject_id)
        patient_id = prescription.get("patient_id") or getattr(payload, "patient_id", "")

        if status_reached(prescription.get("status"), PrescriptionStatus.PHARMACY_SELECTED):
            pharmacy_id = prescription["pharmacy_id"]
            ncpdp_id = prescription.get("pharmacy_ncpdp_id", "")
            selected_at = prescription.get("selected_at") or now_iso()
        else:
            pharmacy = await self._select_pharmacy()
            pharmacy_id = str(pharmacy["_id"])
            ncpdp_id = pharmacy.get("ncpdp_id", "")
            selected_at = now_iso()
            reserved = await self._reserve(pharmacy_id)
            try:
                await self.update_prescription(
                    envelope.subject_id,
                    {
                        "status": PrescriptionStatus.PHARMACY_SELECTED.value,
                        "pharmacy_id": pharmacy_id,
                        "pharmacy_ncpdp_id": ncpdp_id,
                        "selected_at": selected_at,
                    },
                )
            except HandlerError:
                if reserved:
                    await self._release(pharmacy_id)
                raise
            logger.info("pharmacy_selected", pharmacy_id=pharmacy_id, ncpdp_id=ncpdp_id)

        await self.emit(
            envelope,
            TOPIC_PHARMACY_SELECTED,
            {
                "patient_id": patient_id,
                "pharmacy_id": pharmacy_id,
                "pharmacy_ncpdp_id": ncpdp_id,
                "selected_at": selected_at,
            },
        )

    async def _select_pharmacy(self) -> dict[str, Any]:
        pharmacies = await self._call_store(
            "find pharmacies", self._store.find(COLLECTION_PHARMACIES, {"active": True})
        )
        if not pharmacies:
            raise HandlerError(
                code=HandlerErrorCodes.NOT_FOUND,
                message="No active pharmacy found",
            )
        if self._tracker is None:
            return pharmacies[0]
        for pharmacy in pharmacies:
            try:
                if await self._tracker.has_capacity(str(pharmacy["_id"])):
                    return pharmacy
            except (CacheError, CapacityError) as e:
                logger.warning(
                    "capacity_check_unavailable",
                    pharmacy_id=str(pharmacy["_id"]),
                    error=str(e),
                )
                return pharmacy
        raise HandlerError(
            code=HandlerErrorCodes.NO_CAPACITY,
            message=f"All {len(pharmacies)} active pharmacies are at capacity",
        )

    async def _reserve(self, pharmacy_id: str) -> bool:
        if self._tracker is None:
            return False
        try:
            count, utilization = await self._tracker.increment(pharmacy_id)
        except (CacheError, CapacityError) as e:
            logger.warning("capacity_increment_failed", pharmacy_id=pharmacy_id, error=str(e))
            return False
        logger.debug(
            "capacity_reserved", pharmacy_id=pharmacy_id, count=count, utilization=utilization
        )
        return True

    async def _release(self, pharmacy_id: str) -> None:
        if self._tracker is None:
            return
        try:
            await self._tracker.decrement(pharmacy_id)
        except (CacheError, CapacityError) as e:
            logger.warning("capacity_release_failed", pharmacy_id=pharmacy_id, error=str(e))
