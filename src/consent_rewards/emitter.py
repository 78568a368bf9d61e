"""
Side-effect emitter narrating engine events as notifications, activity-log
entries and dashboard transactions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import pandas as pd

from .config import NotificationPreferences
from .data_models import (
    ActivityLogEntry,
    NotificationEntry,
    TransactionEntry,
    join_categories,
)
from .events import (
    CategoryToggled,
    DatasetRemoved,
    DatasetUploaded,
    EngineEvent,
    EventBus,
    PartnerActivated,
    PartnerOffered,
    PartnerRejected,
    RewardRedeemed,
    VerificationCancelled,
    VerificationFailed,
    VerificationStarted,
)

USER_UPLOAD = "User Upload"

ACTIVITY_COLUMNS = ["id", "timestamp", "action", "partner", "data_type", "status"]


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class SideEffectEmitter:
    """
    Observer of the event bus. Each event yields at most one notification
    and at most one activity entry; activations also add one transaction.

    Rings are most-recent-first and capped. The emitter never decides
    business outcomes, it only describes events that already happened.
    """

    preferences: NotificationPreferences = field(default_factory=NotificationPreferences)
    notification_cap: int = 50
    activity_cap: int = 100
    notifications: List[NotificationEntry] = field(default_factory=list)
    activity: List[ActivityLogEntry] = field(default_factory=list)
    transactions: List[TransactionEntry] = field(default_factory=list)

    def attach(self, bus: EventBus) -> Callable[[], None]:
        return bus.subscribe(self.handle)

    def restore(
        self,
        notifications: Iterable[NotificationEntry] = (),
        activity: Iterable[ActivityLogEntry] = (),
        transactions: Iterable[TransactionEntry] = (),
    ) -> None:
        self.notifications = list(notifications)[: self.notification_cap]
        self.activity = list(activity)[: self.activity_cap]
        self.transactions = list(transactions)

    # -- ring writers ----------------------------------------------------

    def notify(self, kind: str, title: str, message: str, ts: Optional[datetime] = None) -> None:
        """
        Prepend a notification unless its kind is switched off.
        """

        if not self.preferences.allows(kind):
            return
        kwargs = {"timestamp": ts} if ts is not None else {}
        entry = NotificationEntry(id=_new_id(), kind=kind, title=title, message=message, **kwargs)
        self.notifications.insert(0, entry)
        del self.notifications[self.notification_cap :]

    def log_activity(
        self,
        action: str,
        partner: str,
        data_type: str,
        status: str,
        ts: Optional[datetime] = None,
    ) -> None:
        kwargs = {"timestamp": ts} if ts is not None else {}
        entry = ActivityLogEntry(
            id=_new_id(), action=action, partner=partner, data_type=data_type, status=status, **kwargs
        )
        self.activity.insert(0, entry)
        del self.activity[self.activity_cap :]

    # -- event narration -------------------------------------------------

    def handle(self, event: EngineEvent) -> None:
        narrator = _NARRATORS.get(type(event))
        if narrator is not None:
            narrator(self, event)

    def _offered(self, event: PartnerOffered) -> None:
        if not event.announce:
            return
        partner = event.partner
        self.notify(
            "consent",
            "New Partner Request",
            f"{partner.name} wants to access your data. Reward: {partner.reward.title}",
            event.occurred_at,
        )
        self.log_activity(
            "New partner request",
            partner.name,
            join_categories(partner.required_categories),
            "info",
            event.occurred_at,
        )

    def _category_toggled(self, event: CategoryToggled) -> None:
        action = "Category enabled" if event.enabled else "Category disabled"
        self.log_activity(action, USER_UPLOAD, event.category_id, "info", event.occurred_at)

    def _uploaded(self, event: DatasetUploaded) -> None:
        record = event.record
        if record.succeeded:
            self.log_activity(
                "File uploaded successfully", USER_UPLOAD, event.category_label, "success", event.occurred_at
            )
            return
        self.notify(
            "alert",
            "Dataset failed validation",
            f"{record.file_name}: {(record.rationale or 'AI validation failed.')[:300]}",
            event.occurred_at,
        )
        self.log_activity("File upload failed", USER_UPLOAD, event.category_label, "warning", event.occurred_at)

    def _removed(self, event: DatasetRemoved) -> None:
        self.log_activity("Dataset deleted", USER_UPLOAD, event.record.category, "info", event.occurred_at)

    def _verification_started(self, event: VerificationStarted) -> None:
        partner = event.partner
        self.log_activity(
            "Verification started",
            partner.name,
            join_categories(partner.required_categories),
            "info",
            event.occurred_at,
        )

    def _activated(self, event: PartnerActivated) -> None:
        partner = event.partner
        data_type = join_categories(partner.required_categories)
        self.notify(
            "reward",
            "Reward unlocked",
            f"AI verified your dataset. Your reward from {partner.name} is now available.",
            event.occurred_at,
        )
        self.log_activity("Data sharing accepted", partner.name, data_type, "success", event.occurred_at)
        self.transactions.insert(
            0,
            TransactionEntry(
                id=_new_id(),
                partner=partner.name,
                data_type=data_type,
                value=partner.reward.value,
                status="Active",
                timestamp=event.occurred_at,
            ),
        )

    def _verification_failed(self, event: VerificationFailed) -> None:
        partner = event.partner
        detail = " ".join(event.reasons) or "Please upload valid datasets matching the required categories."
        self.notify("alert", "Verification failed", f"{partner.name}: {detail}", event.occurred_at)
        self.log_activity(
            "Verification failed",
            partner.name,
            join_categories(partner.required_categories),
            "warning",
            event.occurred_at,
        )

    def _verification_cancelled(self, event: VerificationCancelled) -> None:
        partner = event.partner
        self.log_activity(
            "Verification cancelled",
            partner.name,
            join_categories(partner.required_categories),
            "info",
            event.occurred_at,
        )

    def _rejected(self, event: PartnerRejected) -> None:
        partner = event.partner
        self.log_activity(
            "Request rejected",
            partner.name,
            join_categories(partner.required_categories),
            "info",
            event.occurred_at,
        )

    def _redeemed(self, event: RewardRedeemed) -> None:
        reward = event.reward
        self.notify(
            "reward",
            "Reward redeemed",
            f"Your voucher code is {event.voucher.code}",
            event.occurred_at,
        )
        self.log_activity(
            f"Reward redeemed: {reward.title}",
            event.partner_name,
            reward.category.value,
            "success",
            event.occurred_at,
        )

    # -- notification inbox ----------------------------------------------

    def unread_count(self) -> int:
        return sum(1 for entry in self.notifications if not entry.read)

    def mark_read(self, notification_id: str) -> None:
        for entry in self.notifications:
            if entry.id == notification_id:
                entry.read = True
                return
        raise KeyError(notification_id)

    def mark_all_read(self) -> None:
        for entry in self.notifications:
            entry.read = True

    def clear_notification(self, notification_id: str) -> None:
        remaining = [entry for entry in self.notifications if entry.id != notification_id]
        if len(remaining) == len(self.notifications):
            raise KeyError(notification_id)
        self.notifications = remaining

    def to_dataframe(self) -> pd.DataFrame:
        """
        Activity log as a single DataFrame, most recent first.
        """

        if not self.activity:
            return pd.DataFrame(columns=ACTIVITY_COLUMNS)
        return pd.DataFrame(
            [
                {
                    "id": entry.id,
                    "timestamp": entry.timestamp,
                    "action": entry.action,
                    "partner": entry.partner,
                    "data_type": entry.data_type,
                    "status": entry.status,
                }
                for entry in self.activity
            ],
            columns=ACTIVITY_COLUMNS,
        )


_NARRATORS = {
    PartnerOffered: SideEffectEmitter._offered,
    CategoryToggled: SideEffectEmitter._category_toggled,
    DatasetUploaded: SideEffectEmitter._uploaded,
    DatasetRemoved: SideEffectEmitter._removed,
    VerificationStarted: SideEffectEmitter._verification_started,
    PartnerActivated: SideEffectEmitter._activated,
    VerificationFailed: SideEffectEmitter._verification_failed,
    VerificationCancelled: SideEffectEmitter._verification_cancelled,
    PartnerRejected: SideEffectEmitter._rejected,
    RewardRedeemed: SideEffectEmitter._redeemed,
}
