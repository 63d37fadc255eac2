"""rxflow stages library."""

from .adjudication import AdjudicationStage
from .base import StageHandler
from .delivery import DeliveryStage
from .enrollment import EnrollmentStage
from .factory import build_stage_handlers
from .payment import PaymentStage
from .routing import RoutingStage
from .shipping import ShippingStage
from .store import (
    COLLECTION_ADJUDICATIONS,
    COLLECTION_PATIENTS,
    COLLECTION_PAYMENTS,
    COLLECTION_PHARMACIES,
    COLLECTION_PRESCRIPTIONS,
    COLLECTION_SHIPMENTS,
    DocumentStore,
    InMemoryDocumentStore,
    PrescriptionStatus,
    StoreError,
    StoreErrorCodes,
    status_reached,
)
from .validation import ValidationStage, validate_prescription

__all__ = [
    "StageHandler",
    "ValidationStage",
    "EnrollmentStage",
    "RoutingStage",
    "AdjudicationStage",
    "PaymentStage",
    "ShippingStage",
    "DeliveryStage",
    "build_stage_handlers",
    "validate_prescription",
    "DocumentStore",
    "InMemoryDocumentStore",
    "PrescriptionStatus",
    "StoreError",
    "StoreErrorCodes",
    "status_reached",
    "COLLECTION_PRESCRIPTIONS",
    "COLLECTION_PATIENTS",
    "COLLECTION_PHARMACIES",
    "COLLECTION_ADJUDICATIONS",
    "COLLECTION_PAYMENTS",
    "COLLECTION_SHIPMENTS",
]
