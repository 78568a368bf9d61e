"""
Domain events published by the engine components.

Components publish facts about what already happened; observers such as the
side-effect emitter subscribe to them through an `EventBus`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .data_models import (
    DatasetRecord,
    Partner,
    PartnerStatus,
    Reward,
    VoucherRecord,
    utc_now,
)


@dataclass(frozen=True)
class EngineEvent:
    occurred_at: datetime = field(default_factory=utc_now, kw_only=True)


@dataclass(frozen=True)
class PartnerOffered(EngineEvent):
    partner: Partner
    announce: bool = True


@dataclass(frozen=True)
class PartnerTransitioned(EngineEvent):
    """
    Raw status change, published for every legal edge that changes the
    status. A superseding acceptance request publishes only
    `VerificationStarted`.
    """

    partner: Partner
    previous: PartnerStatus
    current: PartnerStatus


@dataclass(frozen=True)
class VerificationStarted(EngineEvent):
    partner: Partner
    token: int
    dataset_ids: Tuple[int, ...]


@dataclass(frozen=True)
class PartnerActivated(EngineEvent):
    partner: Partner


@dataclass(frozen=True)
class VerificationFailed(EngineEvent):
    partner: Partner
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class VerificationCancelled(EngineEvent):
    partner: Partner


@dataclass(frozen=True)
class PartnerRejected(EngineEvent):
    partner: Partner


@dataclass(frozen=True)
class DatasetUploaded(EngineEvent):
    record: DatasetRecord
    category_label: str


@dataclass(frozen=True)
class DatasetRemoved(EngineEvent):
    record: DatasetRecord


@dataclass(frozen=True)
class CategoryToggled(EngineEvent):
    category_id: str
    enabled: bool


@dataclass(frozen=True)
class RewardRedeemed(EngineEvent):
    voucher: VoucherRecord
    reward: Reward
    partner_name: str


Subscriber = Callable[[EngineEvent], None]


class EventBus:
    """
    Synchronous fan-out to subscribers, in subscription order.
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self.published: int = 0

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: EngineEvent) -> None:
        self.published += 1
        for subscriber in list(self._subscribers):
            subscriber(event)


def publish_optional(bus: Optional[EventBus], event: EngineEvent) -> None:
    if bus is not None:
        bus.publish(event)
