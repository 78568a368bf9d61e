import json
import logging
from datetime import datetime, timezone

from conftest import make_record
from consent_rewards.catalog import initial_partners
from consent_rewards.data_models import (
    ActivityLogEntry,
    NotificationEntry,
    PartnerStatus,
    TransactionEntry,
    VoucherRecord,
)
from consent_rewards.persistence import (
    COLLECTION_KEYS,
    EngineSnapshot,
    FileKeyValueStore,
    InMemoryKeyValueStore,
    PersistenceAdapter,
)

STAMP = datetime(2025, 11, 4, 8, 15, tzinfo=timezone.utc)


def _snapshot() -> EngineSnapshot:
    partners = initial_partners()
    partners[0].status = PartnerStatus.ACTIVE
    return EngineSnapshot(
        partners=partners,
        datasets=[make_record(2, "Location"), make_record(1, "Booking History", ok=False)],
        active_categories={"Location", "Booking History"},
        vouchers={"air-nz-flight": VoucherRecord("air-nz-flight", "AIR-7Q2M0Z", STAMP)},
        notifications=[NotificationEntry("n1", "reward", "Reward unlocked", "Enjoy", STAMP)],
        activity=[ActivityLogEntry("a1", "Data sharing accepted", "Air New Zealand", "Location", "success", STAMP)],
        transactions=[TransactionEntry("t1", "Air New Zealand", "Location", "10% OFF", "Active", STAMP)],
    )


def test_save_writes_one_prefixed_key_per_collection():
    store = InMemoryKeyValueStore()
    PersistenceAdapter(store).save(_snapshot())

    assert sorted(store.keys()) == sorted(f"travelsense_{name}" for name in COLLECTION_KEYS)
    vouchers = json.loads(store.get("travelsense_vouchers"))
    assert vouchers == {"air-nz-flight": {"code": "AIR-7Q2M0Z", "issuedAt": STAMP.isoformat()}}
    assert json.loads(store.get("travelsense_active_categories")) == ["Booking History", "Location"]


def test_load_restores_what_was_saved():
    store = InMemoryKeyValueStore()
    adapter = PersistenceAdapter(store)
    original = _snapshot()
    adapter.save(original)

    loaded = adapter.load()

    assert loaded.partners == original.partners
    assert loaded.datasets == original.datasets
    assert loaded.vouchers == original.vouchers
    assert loaded.notifications == original.notifications
    assert loaded.corrupt_keys == []


def test_corrupt_datasets_do_not_block_partners(caplog):
    store = InMemoryKeyValueStore()
    adapter = PersistenceAdapter(store)
    adapter.save(_snapshot())
    store.set("travelsense_datasets", "{not json")

    with caplog.at_level(logging.WARNING, logger="consent_rewards.persistence"):
        loaded = adapter.load()

    assert loaded.datasets == []
    assert loaded.corrupt_keys == ["datasets"]
    assert loaded.partners[0].status is PartnerStatus.ACTIVE
    assert loaded.vouchers["air-nz-flight"].code == "AIR-7Q2M0Z"
    assert any("travelsense_datasets" in message for message in caplog.messages)


def test_wrong_shapes_reset_only_their_key():
    store = InMemoryKeyValueStore()
    adapter = PersistenceAdapter(store)
    adapter.save(_snapshot())
    store.set("travelsense_vouchers", json.dumps(["AIR-7Q2M0Z"]))
    store.set("travelsense_notifications", json.dumps([{"id": "x", "type": "spam"}]))

    loaded = adapter.load()

    assert loaded.vouchers == {}
    assert loaded.notifications == []
    assert sorted(loaded.corrupt_keys) == ["notifications", "vouchers"]
    assert len(loaded.activity) == 1


def test_missing_keys_load_as_defaults():
    loaded = PersistenceAdapter(InMemoryKeyValueStore()).load()
    assert loaded == EngineSnapshot()


def test_clear_removes_every_collection():
    store = InMemoryKeyValueStore({"unrelated": "1"})
    adapter = PersistenceAdapter(store, prefix="app_")
    adapter.save(_snapshot())
    adapter.clear()
    assert list(store.keys()) == ["unrelated"]


def test_file_store_round_trip(tmp_path):
    store = FileKeyValueStore(tmp_path / "state")
    adapter = PersistenceAdapter(store)
    adapter.save(_snapshot())

    assert (tmp_path / "state" / "travelsense_partners.json").exists()
    assert not list((tmp_path / "state").glob("*.tmp"))

    reopened = PersistenceAdapter(FileKeyValueStore(tmp_path / "state")).load()
    assert [partner.name for partner in reopened.partners][:2] == ["Air New Zealand", "Booking.com"]

    store.remove("travelsense_partners")
    store.remove("travelsense_partners")
    assert store.get("travelsense_partners") is None
