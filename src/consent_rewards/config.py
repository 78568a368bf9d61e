"""Configuration for the rewards engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping, Optional

_ENV_PREFIX = "CONSENT_REWARDS_"


@dataclass
class NotificationPreferences:
    """Per-kind opt-in flags; disabled kinds are dropped, not queued."""

    reward: bool = True
    security: bool = True
    consent: bool = True
    alert: bool = True

    def allows(self, kind: str) -> bool:
        return bool(getattr(self, kind, False))

    def set(self, kind: str, enabled: bool) -> None:
        if kind not in {f.name for f in fields(self)}:
            raise ValueError(f"Unknown notification kind: {kind}")
        setattr(self, kind, enabled)


@dataclass
class EngineConfig:
    validator_url: str = "http://localhost:5000/ai-validate"
    validator_timeout: float = 30.0
    verification_delay: float = 2.0
    notification_cap: int = 50
    activity_cap: int = 100
    storage_dir: Optional[Path] = None
    key_prefix: str = "travelsense_"
    offer_interval: float = 300.0
    seed: Optional[int] = None
    notifications: NotificationPreferences = field(default_factory=NotificationPreferences)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from ``CONSENT_REWARDS_*`` variables; bad values keep defaults."""

        env = os.environ if environ is None else environ
        defaults = cls()

        def raw(name: str) -> Optional[str]:
            value = env.get(_ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        storage = raw("STORAGE_DIR")
        notifications = NotificationPreferences(
            reward=_coerce_bool(raw("NOTIFY_REWARD"), True),
            security=_coerce_bool(raw("NOTIFY_SECURITY"), True),
            consent=_coerce_bool(raw("NOTIFY_CONSENT"), True),
            alert=_coerce_bool(raw("NOTIFY_ALERT"), True),
        )
        return cls(
            validator_url=raw("VALIDATOR_URL") or defaults.validator_url,
            validator_timeout=_coerce_positive_float(
                raw("VALIDATOR_TIMEOUT"), defaults.validator_timeout
            ),
            verification_delay=_coerce_positive_float(
                raw("VERIFICATION_DELAY"), defaults.verification_delay, allow_zero=True
            ),
            notification_cap=_coerce_positive_int(raw("NOTIFICATION_CAP"), defaults.notification_cap),
            activity_cap=_coerce_positive_int(raw("ACTIVITY_CAP"), defaults.activity_cap),
            storage_dir=Path(storage) if storage else None,
            key_prefix=raw("KEY_PREFIX") or defaults.key_prefix,
            offer_interval=_coerce_positive_float(raw("OFFER_INTERVAL"), defaults.offer_interval),
            seed=_coerce_int(raw("SEED")),
            notifications=notifications,
        )


def _coerce_bool(raw: Optional[str], fallback: bool) -> bool:
    if raw is None:
        return fallback
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return fallback


def _coerce_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _coerce_positive_int(raw: Optional[str], fallback: int) -> int:
    value = _coerce_int(raw)
    if value is None or value <= 0:
        return fallback
    return value


def _coerce_positive_float(raw: Optional[str], fallback: float, allow_zero: bool = False) -> float:
    if raw is None:
        return fallback
    try:
        value = float(raw)
    except ValueError:
        return fallback
    if value < 0 or (value == 0 and not allow_zero):
        return fallback
    return value
