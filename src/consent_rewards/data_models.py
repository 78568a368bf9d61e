"""
Core data models used across the consent_rewards package.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ts_to_json(ts: datetime) -> str:
    return ts.isoformat()


def _ts_from_json(raw: str) -> datetime:
    ts = datetime.fromisoformat(raw)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class PartnerStatus(Enum):
    PENDING = "Pending"
    VERIFICATION_PENDING = "VerificationPending"
    ACTIVE = "Active"
    REJECTED = "Rejected"


class VerificationStatus(Enum):
    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


class DatasetOutcome(Enum):
    SUCCESS = "success"
    ERROR = "error"


class RewardCategory(Enum):
    TRAVEL = "travel"
    DINING = "dining"
    SHOPPING = "shopping"


@dataclass(frozen=True)
class Category:
    """
    A named class of personal data a partner may request.
    """

    id: str
    label: str
    description: str


@dataclass(frozen=True)
class DatasetRecord:
    """
    One uploaded file and the validator's judgement on it.
    """

    id: int
    file_name: str
    category: str
    size_bytes: int
    uploaded_at: datetime
    outcome: DatasetOutcome
    record_count: int
    file_type: str
    rationale: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is DatasetOutcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "category": self.category,
            "sizeBytes": self.size_bytes,
            "uploadedAt": _ts_to_json(self.uploaded_at),
            "outcome": self.outcome.value,
            "recordCount": self.record_count,
            "fileType": self.file_type,
            "rationale": self.rationale,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DatasetRecord":
        return cls(
            id=int(payload["id"]),
            file_name=str(payload["fileName"]),
            category=str(payload["category"]),
            size_bytes=int(payload["sizeBytes"]),
            uploaded_at=_ts_from_json(payload["uploadedAt"]),
            outcome=DatasetOutcome(payload["outcome"]),
            record_count=int(payload["recordCount"]),
            file_type=str(payload["fileType"]),
            rationale=payload.get("rationale"),
        )


@dataclass(frozen=True)
class Reward:
    """
    The benefit a partner offers in exchange for access. `id` is also the
    redemption key.
    """

    id: str
    title: str
    description: str
    category: RewardCategory
    value: str
    expiry_date: Optional[str] = None
    terms: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "value": self.value,
            "expiryDate": self.expiry_date,
            "terms": self.terms,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Reward":
        return cls(
            id=str(payload["id"]),
            title=str(payload["title"]),
            description=str(payload.get("description", "")),
            category=RewardCategory(payload["category"]),
            value=str(payload["value"]),
            expiry_date=payload.get("expiryDate"),
            terms=payload.get("terms"),
        )


@dataclass
class Partner:
    """
    An external entity requesting categorized data in exchange for a reward.

    Only the lifecycle state machine mutates `status` and
    `verification_status`.
    """

    id: int
    name: str
    required_categories: FrozenSet[str]
    reward: Reward
    status: PartnerStatus = PartnerStatus.PENDING
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    logo: str = ""

    def __post_init__(self) -> None:
        self.required_categories = frozenset(self.required_categories)

    def copy(self) -> "Partner":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "logo": self.logo,
            "requiredCategories": sorted(self.required_categories),
            "reward": self.reward.to_dict(),
            "status": self.status.value,
            "verificationStatus": self.verification_status.value,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Partner":
        return cls(
            id=int(payload["id"]),
            name=str(payload["name"]),
            required_categories=frozenset(payload["requiredCategories"]),
            reward=Reward.from_dict(payload["reward"]),
            status=PartnerStatus(payload["status"]),
            verification_status=VerificationStatus(
                payload.get("verificationStatus", VerificationStatus.UNVERIFIED.value)
            ),
            logo=str(payload.get("logo", "")),
        )


@dataclass(frozen=True)
class VoucherRecord:
    """
    A redemption code issued once for a reward and never changed afterwards.
    """

    reward_id: str
    code: str
    issued_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "issuedAt": _ts_to_json(self.issued_at)}

    @classmethod
    def from_dict(cls, reward_id: str, payload: Dict[str, Any]) -> "VoucherRecord":
        return cls(
            reward_id=reward_id,
            code=str(payload["code"]),
            issued_at=_ts_from_json(payload["issuedAt"]),
        )


NOTIFICATION_KINDS = ("reward", "security", "consent", "alert")
ACTIVITY_STATUSES = ("success", "warning", "info")


@dataclass
class NotificationEntry:
    id: str
    kind: str
    title: str
    message: str
    timestamp: datetime = field(default_factory=utc_now)
    read: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind,
            "title": self.title,
            "message": self.message,
            "timestamp": _ts_to_json(self.timestamp),
            "read": self.read,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "NotificationEntry":
        kind = str(payload["type"])
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification type: {kind}")
        return cls(
            id=str(payload["id"]),
            kind=kind,
            title=str(payload["title"]),
            message=str(payload["message"]),
            timestamp=_ts_from_json(payload["timestamp"]),
            read=bool(payload.get("read", False)),
        )


@dataclass(frozen=True)
class ActivityLogEntry:
    id: str
    action: str
    partner: str
    data_type: str
    status: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "partner": self.partner,
            "dataType": self.data_type,
            "status": self.status,
            "timestamp": _ts_to_json(self.timestamp),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ActivityLogEntry":
        status = str(payload["status"])
        if status not in ACTIVITY_STATUSES:
            raise ValueError(f"Unknown activity status: {status}")
        return cls(
            id=str(payload["id"]),
            action=str(payload["action"]),
            partner=str(payload["partner"]),
            data_type=str(payload["dataType"]),
            status=status,
            timestamp=_ts_from_json(payload["timestamp"]),
        )


@dataclass(frozen=True)
class TransactionEntry:
    """
    A data-sharing transaction shown on the dashboard, one per activation.
    """

    id: str
    partner: str
    data_type: str
    value: str
    status: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "partner": self.partner,
            "dataType": self.data_type,
            "value": self.value,
            "status": self.status,
            "timestamp": _ts_to_json(self.timestamp),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TransactionEntry":
        return cls(
            id=str(payload["id"]),
            partner=str(payload["partner"]),
            data_type=str(payload["dataType"]),
            value=str(payload["value"]),
            status=str(payload["status"]),
            timestamp=_ts_from_json(payload["timestamp"]),
        )


def join_categories(categories: Iterable[str]) -> str:
    return ", ".join(sorted(categories))
