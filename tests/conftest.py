"""Shared fixtures for the consent_rewards tests."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Sequence

import numpy as np
import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from consent_rewards.catalog import initial_partners  # noqa: E402
from consent_rewards.categories import CategoryRegistry  # noqa: E402
from consent_rewards.data_models import DatasetOutcome, DatasetRecord  # noqa: E402
from consent_rewards.datasets import DatasetStore  # noqa: E402
from consent_rewards.events import EngineEvent, EventBus  # noqa: E402
from consent_rewards.state_machine import PartnerLifecycleStateMachine  # noqa: E402
from consent_rewards.validator import DatasetValidator, UploadFile, ValidatorVerdict  # noqa: E402


class ScriptedValidator(DatasetValidator):
    """Returns queued verdicts (or raises queued exceptions), then `default`."""

    def __init__(self, default: ValidatorVerdict = ValidatorVerdict(ok=True)) -> None:
        self.default = default
        self.verdicts: List[object] = []
        self.calls: List[str] = []

    async def validate(self, file: UploadFile) -> ValidatorVerdict:
        self.calls.append(file.file_name)
        if self.verdicts:
            verdict = self.verdicts.pop(0)
            if isinstance(verdict, Exception):
                raise verdict
            return verdict
        return self.default


def make_file(name: str = "data.csv", size: int = 1024) -> UploadFile:
    return UploadFile(file_name=name, content=b"x" * size, content_type="text/csv")


def make_record(
    record_id: int,
    category: str,
    file_name: str = "data.csv",
    size: int = 1024,
    ok: bool = True,
) -> DatasetRecord:
    return DatasetRecord(
        id=record_id,
        file_name=file_name,
        category=category,
        size_bytes=size,
        uploaded_at=datetime(2025, 6, 1, tzinfo=timezone.utc),
        outcome=DatasetOutcome.SUCCESS if ok else DatasetOutcome.ERROR,
        record_count=250 if ok else 0,
        file_type=file_name.rsplit(".", 1)[-1],
    )


@pytest.fixture
def registry() -> CategoryRegistry:
    return CategoryRegistry()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def events(bus: EventBus) -> List[EngineEvent]:
    recorded: List[EngineEvent] = []
    bus.subscribe(recorded.append)
    return recorded


@pytest.fixture
def validator() -> ScriptedValidator:
    return ScriptedValidator()


@pytest.fixture
def store(registry, validator, bus) -> DatasetStore:
    return DatasetStore(registry, validator, rng=np.random.default_rng(7), bus=bus)


@pytest.fixture
def active() -> set:
    return set()


@pytest.fixture
def machine(store, active, bus) -> PartnerLifecycleStateMachine:
    machine = PartnerLifecycleStateMachine(store, active, bus=bus)
    machine.restore(initial_partners())
    return machine


@pytest.fixture
def make_eligible(store, active, machine):
    """Enable and upload for every category a partner needs; returns the dataset ids."""

    def prepare(partner_id: int) -> List[int]:
        partner = machine.get(partner_id)
        ids = []
        for category in sorted(partner.required_categories):
            active.add(category)
            record = asyncio.run(store.upload(category, make_file(f"{category}.csv")))
            ids.append(record.id)
        return ids

    return prepare


@pytest.fixture
def activate(machine, make_eligible):
    """Drive a partner all the way to Active."""

    def run(partner_id: int, dataset_ids: Sequence[int] = ()) -> None:
        ids = list(dataset_ids) or make_eligible(partner_id)
        ticket = machine.request_acceptance(partner_id, ids)
        machine.on_verification_result(partner_id, True, ticket.token)

    return run
