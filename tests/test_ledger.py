import re
from datetime import datetime, timezone

import numpy as np
import pytest

from consent_rewards.data_models import VoucherRecord
from consent_rewards.events import RewardRedeemed
from consent_rewards.ledger import RedemptionForbidden, RewardLedger


def test_redeem_before_activation_is_forbidden(machine, bus):
    ledger = RewardLedger(machine, rng=np.random.default_rng(1), bus=bus)
    with pytest.raises(RedemptionForbidden):
        ledger.redeem(machine.get(1).reward)
    assert len(ledger) == 0


def test_redeem_is_idempotent(machine, bus, events, activate):
    activate(1)
    ledger = RewardLedger(machine, rng=np.random.default_rng(1), bus=bus)
    reward = machine.get(1).reward

    vouchers = [ledger.redeem(reward) for _ in range(5)]

    assert len({voucher.code for voucher in vouchers}) == 1
    assert all(voucher is vouchers[0] for voucher in vouchers)
    assert re.fullmatch(r"AIR-[0-9A-Z]{6}", vouchers[0].code)
    assert len(ledger) == 1
    assert sum(isinstance(event, RewardRedeemed) for event in events) == 1


def test_seeded_codes_are_reproducible_and_unique(machine):
    first = RewardLedger(machine, rng=np.random.default_rng(11)).generate_code("air-nz-flight")
    again = RewardLedger(machine, rng=np.random.default_rng(11)).generate_code("air-nz-flight")
    assert first == again

    taken = VoucherRecord("booking-hotel", first, datetime(2025, 1, 1, tzinfo=timezone.utc))
    ledger = RewardLedger(machine, rng=np.random.default_rng(11), vouchers=[taken])
    assert ledger.generate_code("air-nz-flight") != first


def test_restored_voucher_is_returned_unchanged(machine):
    reward = machine.get(2).reward
    stored = VoucherRecord(reward.id, "BOO-ABC123", datetime(2025, 2, 1, tzinfo=timezone.utc))
    ledger = RewardLedger(machine, vouchers=[stored])

    assert ledger.redeem(reward) == stored
    assert ledger.is_redeemed(reward.id)
    assert ledger.voucher_for("air-nz-flight") is None


def test_available_rewards_lists_unredeemed_first(machine, activate):
    activate(1)
    activate(3)
    ledger = RewardLedger(machine, rng=np.random.default_rng(3))
    ledger.redeem(machine.get(1).reward)

    rewards = [reward.id for reward in ledger.available_rewards()]
    assert rewards == ["tourism-nz-voucher", "air-nz-flight"]
