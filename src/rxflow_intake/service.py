"""処方箋の受付（ワークフローの起点）"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from rxflow_cache import CacheClient
from rxflow_config import CoordinationSection
from rxflow_dedup import DeduplicationGuard
from rxflow_events import (
    TOPIC_INTAKE_RECEIVED,
    X_CORRELATION_ID,
    EventEnvelope,
    create_event,
    generate_correlation_id,
)
from rxflow_messaging import EventProducer, MessagingError
from rxflow_ratelimit import RateLimiter
from rxflow_stages import COLLECTION_PRESCRIPTIONS, DocumentStore, PrescriptionStatus, StoreError

from .exceptions import IntakeError, IntakeErrorCodes
from .models import IntakeResult, IntakeStatus, PrescriptionSubmission

logger = structlog.get_logger(__name__)


def new_prescription_id() -> str:
    return "rx_" + uuid.uuid4().hex


def dedup_parts(submission: PrescriptionSubmission) -> tuple[str, str, str]:
    """重複判定キーの構成要素 (患者, NDC, 処方日) を返す。

    患者 ID がなければ "姓名" の組、処方日がなければ当日（UTC）で代替する。
    """
    patient = submission.patient
    patient_key = patient.id or f"{patient.first_name}_{patient.last_name}"
    date_written = submission.date_written or datetime.now(UTC).date().isoformat()
    return patient_key, submission.medication.ndc, date_written


class IntakeService:
    """処方箋を受け付け、保存して intake.received を発行する。

    レート制限 -> 重複排除 -> 保存 -> 発行 の順で処理する。
    """

    def __init__(
        self,
        store: DocumentStore,
        producer: EventProducer,
        dedup: DeduplicationGuard,
        rate_limiter: RateLimiter | None = None,
        rate_limit: int | None = None,
        rate_window: float | None = None,
    ) -> None:
        self._store = store
        self._producer = producer
        self._dedup = dedup
        self._rate_limiter = rate_limiter
        self._rate_limit = rate_limit
        self._rate_window = rate_window

    @classmethod
    def from_config(
        cls,
        coordination: CoordinationSection,
        store: DocumentStore,
        producer: EventProducer,
        cache: CacheClient,
    ) -> IntakeService:
        """coordination 設定から重複排除とレート制限を組み立てる。"""
        return cls(
            store,
            producer,
            DeduplicationGuard(cache, ttl=coordination.dedup_ttl_seconds),
            rate_limiter=RateLimiter(
                cache,
                default_limit=coordination.rate_limit_default,
                default_window=coordination.rate_limit_window_seconds,
            ),
        )

    async def submit(
        self,
        submission: PrescriptionSubmission,
        client_id: str | None = None,
        correlation_id: str | None = None,
    ) -> IntakeResult:
        """処方箋を受け付ける。

        Raises:
            IntakeError: 保存（STORE_FAILED）または発行（PUBLISH_FAILED）に失敗した場合
        """
        correlation_id = correlation_id or generate_correlation_id()
        with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
            if self._rate_limiter is not None and client_id:
                limit = await self._rate_limiter.check_limit(
                    client_id, self._rate_limit, self._rate_window
                )
                if not limit.allowed:
                    logger.info("intake_rate_limited", client_id=client_id)
                    return IntakeResult(status=IntakeStatus.RATE_LIMITED, correlation_id=correlation_id)

            parts = dedup_parts(submission)
            dedup = await self._dedup.check_and_reserve(*parts)
            if dedup.is_unavailable:
                logger.warning("intake_dedup_unavailable_fail_open", dedup_key=dedup.key)
            if not dedup.admits(fail_open=True):
                logger.info("intake_duplicate", dedup_key=dedup.key)
                return IntakeResult(
                    status=IntakeStatus.DUPLICATE,
                    correlation_id=correlation_id,
                    dedup_key=dedup.key,
                )

            prescription_id = submission.prescription_id or new_prescription_id()
            document = self._build_document(prescription_id, submission, correlation_id)
            try:
                await self._store.insert(COLLECTION_PRESCRIPTIONS, document)
            except StoreError as e:
                await self._dedup.release(*parts)
                raise IntakeError(
                    code=IntakeErrorCodes.STORE_FAILED,
                    message=f"Failed to save prescription {prescription_id}",
                    cause=e,
                ) from e

            event = await self._publish(correlation_id, prescription_id, document)
            logger.info(
                "prescription_received",
                prescription_id=prescription_id,
                event_id=event.event_id,
            )
            return IntakeResult(
                status=IntakeStatus.ACCEPTED,
                prescription_id=prescription_id,
                correlation_id=correlation_id,
                event_id=event.event_id,
                dedup_key=dedup.key,
            )

    async def resend(self, prescription_id: str) -> EventEnvelope:
        """保存済みで未処理の処方箋について intake.received を再発行する。

        発行失敗で received のまま残った処方箋の再投入に使う。

        Raises:
            IntakeError: 処方箋が見つからない（STORE_FAILED）、または発行失敗（PUBLISH_FAILED）
        """
        try:
            document = await self._store.find_one(
                COLLECTION_PRESCRIPTIONS, {"_id": prescription_id}
            )
        except StoreError as e:
            raise IntakeError(
                code=IntakeErrorCodes.STORE_FAILED,
                message=f"Failed to load prescription {prescription_id}",
                cause=e,
            ) from e
        if document is None:
            raise IntakeError(
                code=IntakeErrorCodes.STORE_FAILED,
                message=f"Prescription not found: {prescription_id}",
            )
        correlation_id = document.get("correlation_id") or generate_correlation_id()
        return await self._publish(correlation_id, prescription_id, document)

    async def _publish(
        self, correlation_id: str, prescription_id: str, document: dict[str, Any]
    ) -> EventEnvelope:
        event = create_event(correlation_id, prescription_id, self._event_payload(document))
        try:
            await self._producer.publish_async(
                TOPIC_INTAKE_RECEIVED,
                event.to_json(),
                key=prescription_id,
                headers={X_CORRELATION_ID: correlation_id},
            )
        except MessagingError as e:
            raise IntakeError(
                code=IntakeErrorCodes.PUBLISH_FAILED,
                message=f"Failed to publish intake event for {prescription_id}",
                cause=e,
            ) from e
        return event

    @staticmethod
    def _build_document(
        prescription_id: str, submission: PrescriptionSubmission, correlation_id: str
    ) -> dict[str, Any]:
        now = datetime.now(UTC).isoformat()
        data = submission.model_dump(mode="json", exclude={"prescription_id"})
        return {
            "_id": prescription_id,
            "prescription_id": prescription_id,
            "status": PrescriptionStatus.RECEIVED.value,
            "patient_id": submission.patient.id,
            **data,
            "correlation_id": correlation_id,
            "created_at": now,
            "updated_at": now,
        }

    @staticmethod
    def _event_payload(document: dict[str, Any]) -> dict[str, Any]:
        medication = document.get("medication") or {}
        patient = document.get("patient") or {}
        prescriber = document.get("prescriber") or {}
        payload: dict[str, Any] = {
            "status": document.get("status"),
            "patient_id": document.get("patient_id", ""),
            "drug_ndc": medication.get("ndc", ""),
            "patient": {
                "id": patient.get("id", ""),
                "first_name": patient.get("first_name", ""),
                "last_name": patient.get("last_name", ""),
                "date_of_birth": patient.get("date_of_birth", ""),
            },
            "prescriber": {
                "npi": prescriber.get("npi", ""),
                "first_name": prescriber.get("first_name", ""),
                "last_name": prescriber.get("last_name", ""),
            },
            "medication": {
                "ndc": medication.get("ndc", ""),
                "name": medication.get("name", ""),
                "quantity": medication.get("quantity", 0),
                "refills": medication.get("refills", 0),
            },
            "date_written": document.get("date_written", ""),
            "created_at": document.get("created_at", ""),
        }
        insurance = document.get("insurance")
        if insurance and (insurance.get("bin") or insurance.get("member_id")):
            payload["insurance"] = insurance
        return payload
