from datetime import datetime, timezone

import pandas as pd
import pytest

from consent_rewards.data_models import TransactionEntry, VoucherRecord
from consent_rewards.monitoring import (
    dashboard_stats,
    redemption_metrics,
    reward_amount,
    transactions_frame,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def _tx(tx_id, value, month, day=3, status="Active", data_type="Location, Travel Preferences"):
    return TransactionEntry(
        id=tx_id,
        partner=f"Partner {tx_id}",
        data_type=data_type,
        value=value,
        status=status,
        timestamp=datetime(2026, month, day, tzinfo=timezone.utc),
    )


def test_reward_amount_extracts_numbers():
    values = pd.Series(["$50", "10% OFF", "FREE NIGHT", "$12.5"])
    assert reward_amount(values).tolist() == [50.0, 10.0, 0.0, 12.5]


def test_dashboard_aggregates_current_and_previous_month():
    transactions = [
        _tx("a", "$50", 3),
        _tx("b", "10% OFF", 3, data_type="Location"),
        _tx("c", "$25", 2),
        _tx("d", "$99", 3, status="Pending"),
    ]
    vouchers = [VoucherRecord("r1", "AIR-000001", NOW)]

    stats = dashboard_stats(transactions, vouchers, active_partners=2, now=NOW)

    assert stats.total_earned == pytest.approx(85.0)
    assert stats.shares_this_month == 3
    assert stats.shares_change == 2
    assert stats.monthly["month"].tolist() == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]
    assert stats.monthly["earnings"].tolist()[-2:] == [25, 60]
    assert stats.data_types == {"Location": 3, "Travel Preferences": 2}
    assert stats.redeemed == 1
    assert stats.redemption_rate == pytest.approx(0.5)


def test_change_equals_current_count_without_previous_shares():
    stats = dashboard_stats([_tx("a", "$10", 3)], [], active_partners=1, now=NOW)
    assert stats.shares_change == 1


def test_empty_history():
    stats = dashboard_stats([], [], active_partners=0, now=NOW)
    assert stats.total_earned == 0.0
    assert stats.shares_this_month == 0
    assert stats.shares_change == 0
    assert len(stats.monthly) == 6
    assert stats.data_types == {}
    assert stats.redemption_rate == 0.0


def test_transactions_frame_is_utc():
    frame = transactions_frame([_tx("a", "$5", 1)])
    assert str(frame["timestamp"].dt.tz) == "UTC"
    assert frame.loc[0, "amount"] == 5.0


def test_redemption_metrics():
    assert redemption_metrics([], 0) == {"redeemed": 0.0, "redemption_rate": 0.0}
