"""ステージハンドラ一式の生成"""

from __future__ import annotations

from rxflow_capacity import CapacityTracker
from rxflow_messaging import EventProducer

from .adjudication import AdjudicationStage
from .base import StageHandler
from .delivery import DeliveryStage
from .enrollment import EnrollmentStage
from .payment import PaymentStage
from .routing import RoutingStage
from .shipping import ShippingStage
from .store import DocumentStore
from .validation import ValidationStage


def build_stage_handlers(
    store: DocumentStore,
    producer: EventProducer,
    tracker: CapacityTracker | None = None,
) -> list[StageHandler]:
    """ワークフローの全ステージを生成する（トピック順）。"""
    return [
        ValidationStage(store, producer),
        EnrollmentStage(store, producer),
        RoutingStage(store, producer, tracker),
        AdjudicationStage(store, producer),
        PaymentStage(store, producer),
        ShippingStage(store, producer),
        DeliveryStage(store, producer),
    ]
