"""Key-value persistence for the engine's collections."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, TypeVar

from .data_models import (
    ActivityLogEntry,
    DatasetRecord,
    NotificationEntry,
    Partner,
    TransactionEntry,
    VoucherRecord,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

PARTNERS_KEY = "partners"
DATASETS_KEY = "datasets"
ACTIVE_CATEGORIES_KEY = "active_categories"
VOUCHERS_KEY = "vouchers"
NOTIFICATIONS_KEY = "notifications"
ACTIVITY_KEY = "activity_log"
TRANSACTIONS_KEY = "transactions"

COLLECTION_KEYS = (
    PARTNERS_KEY,
    DATASETS_KEY,
    ACTIVE_CATEGORIES_KEY,
    VOUCHERS_KEY,
    NOTIFICATIONS_KEY,
    ACTIVITY_KEY,
    TRANSACTIONS_KEY,
)


class KeyValueStore:
    """Abstract string-keyed storage; values are JSON text."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> Iterable[str]:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self._data)


class FileKeyValueStore(KeyValueStore):
    """One ``<key>.json`` file per key, replaced atomically on write."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root).resolve()
        self._lock = threading.Lock()
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        with self._lock:
            tmp_path = self._path(key).with_suffix(".json.tmp")
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(self._path(key))

    def remove(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if path.exists():
                path.unlink()

    def keys(self) -> Iterable[str]:
        return [path.stem for path in self._root.glob("*.json")]


@dataclass
class EngineSnapshot:
    """Serializable view of every persisted collection."""

    partners: List[Partner] = field(default_factory=list)
    datasets: List[DatasetRecord] = field(default_factory=list)
    active_categories: Set[str] = field(default_factory=set)
    vouchers: Dict[str, VoucherRecord] = field(default_factory=dict)
    notifications: List[NotificationEntry] = field(default_factory=list)
    activity: List[ActivityLogEntry] = field(default_factory=list)
    transactions: List[TransactionEntry] = field(default_factory=list)
    corrupt_keys: List[str] = field(default_factory=list)


def _decode_list(loader: Callable[[Dict[str, Any]], T]) -> Callable[[Any], List[T]]:
    def decode(payload: Any) -> List[T]:
        if not isinstance(payload, list):
            raise TypeError(f"expected a JSON array, got {type(payload).__name__}")
        return [loader(item) for item in payload]

    return decode


def _decode_categories(payload: Any) -> Set[str]:
    if not isinstance(payload, list) or not all(isinstance(item, str) for item in payload):
        raise TypeError("expected a JSON array of category ids")
    return set(payload)


def _decode_vouchers(payload: Any) -> Dict[str, VoucherRecord]:
    if not isinstance(payload, dict):
        raise TypeError("expected a JSON object keyed by reward id")
    return {reward_id: VoucherRecord.from_dict(reward_id, item) for reward_id, item in payload.items()}


class PersistenceAdapter:
    """
    Writes one logical key per collection and reads them back independently.

    A key that fails to decode resets to its default; the other keys still
    load.
    """

    def __init__(self, store: KeyValueStore, prefix: str = "travelsense_") -> None:
        self.store = store
        self.prefix = prefix

    def key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def save(self, snapshot: EngineSnapshot) -> None:
        payloads = {
            PARTNERS_KEY: [partner.to_dict() for partner in snapshot.partners],
            DATASETS_KEY: [record.to_dict() for record in snapshot.datasets],
            ACTIVE_CATEGORIES_KEY: sorted(snapshot.active_categories),
            VOUCHERS_KEY: {rid: voucher.to_dict() for rid, voucher in snapshot.vouchers.items()},
            NOTIFICATIONS_KEY: [entry.to_dict() for entry in snapshot.notifications],
            ACTIVITY_KEY: [entry.to_dict() for entry in snapshot.activity],
            TRANSACTIONS_KEY: [entry.to_dict() for entry in snapshot.transactions],
        }
        for name, payload in payloads.items():
            self.store.set(self.key(name), json.dumps(payload, ensure_ascii=False))

    def _load_key(self, name: str, decode: Callable[[Any], T], default: T, corrupt: List[str]) -> T:
        raw = self.store.get(self.key(name))
        if raw is None:
            return default
        try:
            return decode(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
            LOGGER.warning("Corrupt persisted state for %s, resetting: %s", self.key(name), exc)
            corrupt.append(name)
            return default

    def load(self) -> EngineSnapshot:
        corrupt: List[str] = []
        return EngineSnapshot(
            partners=self._load_key(PARTNERS_KEY, _decode_list(Partner.from_dict), [], corrupt),
            datasets=self._load_key(DATASETS_KEY, _decode_list(DatasetRecord.from_dict), [], corrupt),
            active_categories=self._load_key(ACTIVE_CATEGORIES_KEY, _decode_categories, set(), corrupt),
            vouchers=self._load_key(VOUCHERS_KEY, _decode_vouchers, {}, corrupt),
            notifications=self._load_key(
                NOTIFICATIONS_KEY, _decode_list(NotificationEntry.from_dict), [], corrupt
            ),
            activity=self._load_key(ACTIVITY_KEY, _decode_list(ActivityLogEntry.from_dict), [], corrupt),
            transactions=self._load_key(
                TRANSACTIONS_KEY, _decode_list(TransactionEntry.from_dict), [], corrupt
            ),
            corrupt_keys=corrupt,
        )

    def clear(self) -> None:
        for name in COLLECTION_KEYS:
            self.store.remove(self.key(name))
