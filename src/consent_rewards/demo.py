"""
End-to-end demo walking one user through the consent and reward lifecycle,
from enabling categories to redeeming a voucher.
"""

from __future__ import annotations

import asyncio
import logging

from . import monitoring
from .config import EngineConfig
from .engine import RewardsEngine
from .persistence import InMemoryKeyValueStore
from .validator import DatasetValidator, UploadFile, ValidatorVerdict
from .verification import SimulatedVerifier


class ExtensionValidator(DatasetValidator):
    """
    Offline stand-in for the validator service: accepts CSV files with a
    header row and at least one data row.
    """

    async def validate(self, file: UploadFile) -> ValidatorVerdict:
        if file.extension != ".csv":
            return ValidatorVerdict(ok=False, error=f"{file.file_name} is not tabular data.")
        lines = [line for line in file.content.decode("utf-8", "replace").splitlines() if line]
        if len(lines) < 2:
            return ValidatorVerdict(ok=False, error="The file has no data rows.")
        return ValidatorVerdict(ok=True, records_count=len(lines) - 1)


def synthetic_csv(name: str, rows: int = 40) -> UploadFile:
    body = ["date,destination,amount"]
    body.extend(f"2025-0{1 + i % 9}-1{i % 9},Queenstown,{100 + i}" for i in range(rows))
    return UploadFile(file_name=name, content="\n".join(body).encode("utf-8"), content_type="text/csv")


async def run_lifecycle(engine: RewardsEngine) -> None:
    partner = engine.machine.get(1)
    print(f"[run_lifecycle] {partner.name} needs {sorted(partner.required_categories)}")

    for category in sorted(partner.required_categories):
        engine.set_category(category, True)
    print(f"[run_lifecycle] Before uploads: {engine.evaluate(partner.id).guidance()}")

    rejected = await engine.upload("Booking History", UploadFile("notes.pdf", b"%PDF-1.4"))
    print(f"[run_lifecycle] notes.pdf -> {rejected.outcome.value}: {rejected.rationale}")

    selected = []
    for category, file_name in (
        ("Travel Preferences", "prefs.csv"),
        ("Booking History", "bookings.csv"),
    ):
        record = await engine.upload(category, synthetic_csv(file_name))
        print(f"[run_lifecycle] {file_name} -> {record.outcome.value} ({record.record_count} records)")
        selected.append(record.id)

    handle = engine.start_verification(partner.id, selected)
    print(f"[run_lifecycle] Verification started with token {handle.token}")
    outcome = await handle.result()
    print(f"[run_lifecycle] Verdict applied={outcome.applied}, status={partner.status.value}")

    voucher = engine.redeem(partner.reward.id)
    again = engine.redeem(partner.reward.id)
    print(f"[run_lifecycle] Voucher {voucher.code} (second redemption same: {voucher == again})")

    other = engine.machine.get(5)
    engine.reject(other.id)
    print(f"[run_lifecycle] {other.name} is now {other.status.value}")
    engine.flush()


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = EngineConfig(verification_delay=0.1, seed=42)
    store = InMemoryKeyValueStore()
    engine = RewardsEngine.boot(
        config,
        store=store,
        validator=ExtensionValidator(),
        verifier=SimulatedVerifier(delay=config.verification_delay),
    )
    print(f"[main] Booted with {len(engine.machine.partners())} partners.")

    asyncio.run(run_lifecycle(engine))

    print(f"[main] {engine.emitter.unread_count()} unread notifications:")
    for entry in engine.emitter.notifications:
        print(f"[main]   [{entry.kind}] {entry.title}: {entry.message}")
    print("[main] Activity log sample:")
    print(engine.emitter.to_dataframe().head()[["action", "partner", "status"]])

    stats = engine.dashboard()
    print(f"[main] Active partners: {stats.active_partners}, total earned: {stats.total_earned:.0f}")
    print(monitoring.redemption_metrics(engine.ledger.vouchers().values(), stats.active_partners))

    reloaded = RewardsEngine.boot(config, store=store, validator=ExtensionValidator())
    print(
        f"[main] Reloaded {len(reloaded.ledger)} voucher(s) and "
        f"{len(reloaded.datasets)} dataset record(s) from storage."
    )


if __name__ == "__main__":
    main()
