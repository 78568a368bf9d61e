"""
Dashboard aggregates computed from transaction and voucher history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd

from .data_models import TransactionEntry, VoucherRecord

TRANSACTION_COLUMNS = ["id", "timestamp", "partner", "data_type", "value", "status"]


@dataclass
class DashboardStats:
    active_partners: int
    total_earned: float
    shares_this_month: int
    shares_change: int
    monthly: pd.DataFrame
    data_types: Dict[str, int] = field(default_factory=dict)
    redeemed: int = 0
    redemption_rate: float = 0.0


def transactions_frame(entries: Iterable[TransactionEntry]) -> pd.DataFrame:
    """
    Convert transaction entries into a DataFrame with a parsed `amount` column.
    """

    records = [
        {
            "id": entry.id,
            "timestamp": entry.timestamp,
            "partner": entry.partner,
            "data_type": entry.data_type,
            "value": entry.value,
            "status": entry.status,
        }
        for entry in entries
    ]
    if not records:
        frame = pd.DataFrame(columns=TRANSACTION_COLUMNS)
        frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
        frame["amount"] = pd.Series(dtype=float)
        return frame
    frame = pd.DataFrame(records, columns=TRANSACTION_COLUMNS)
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    frame["amount"] = reward_amount(frame["value"])
    return frame


def reward_amount(values: pd.Series) -> pd.Series:
    """
    Numeric part of reward values: "$50" -> 50, "10% OFF" -> 10, "FREE" -> 0.
    """

    digits = values.astype(str).str.replace(r"[^0-9.]", "", regex=True)
    return pd.to_numeric(digits, errors="coerce").fillna(0.0).astype(float)


def monthly_series(frame: pd.DataFrame, now: datetime, months: int = 6) -> pd.DataFrame:
    """
    Shares and earnings for the last `months` calendar months, oldest first.
    Earnings only count Active transactions and are rounded to whole units.
    """

    stamp = pd.Timestamp(now)
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert("UTC").tz_localize(None)
    current = stamp.to_period("M")
    periods = pd.period_range(end=current, periods=months, freq="M")
    result = pd.DataFrame({"month": [p.strftime("%b") for p in periods]}, index=periods)
    result["shares"] = 0
    result["earnings"] = 0.0

    if not frame.empty:
        stamped = frame.assign(period=frame["timestamp"].dt.tz_localize(None).dt.to_period("M"))
        stamped = stamped[stamped["period"].isin(periods)]
        shares = stamped.groupby("period").size()
        earnings = stamped[stamped["status"] == "Active"].groupby("period")["amount"].sum()
        result["shares"] = shares.reindex(periods, fill_value=0).astype(int)
        result["earnings"] = earnings.reindex(periods, fill_value=0.0).astype(float)

    result["earnings"] = np.round(result["earnings"]).astype(int)
    return result.reset_index(drop=True)


def data_type_distribution(frame: pd.DataFrame) -> Dict[str, int]:
    """
    Count of Active transactions per data type, most shared first.
    """

    if frame.empty:
        return {}
    active = frame[frame["status"] == "Active"]
    types = active["data_type"].str.split(",").explode().str.strip()
    types = types[types != ""]
    counts = types.value_counts()
    return {str(name): int(count) for name, count in counts.items()}


def redemption_metrics(
    vouchers: Iterable[VoucherRecord], rewards_available: int
) -> Dict[str, float]:
    redeemed = len(list(vouchers))
    rate = redeemed / rewards_available if rewards_available else 0.0
    return {"redeemed": float(redeemed), "redemption_rate": float(rate)}


def dashboard_stats(
    transactions: Iterable[TransactionEntry],
    vouchers: Iterable[VoucherRecord],
    active_partners: int,
    now: Optional[datetime] = None,
) -> DashboardStats:
    now = now or datetime.now(timezone.utc)
    frame = transactions_frame(transactions)
    monthly = monthly_series(frame, now)

    active = frame[frame["status"] == "Active"]
    total_earned = float(active["amount"].sum()) if not active.empty else 0.0

    this_month = int(monthly["shares"].iloc[-1])
    last_month = int(monthly["shares"].iloc[-2])
    change = this_month - last_month if last_month > 0 else this_month

    metrics = redemption_metrics(vouchers, active_partners)
    return DashboardStats(
        active_partners=active_partners,
        total_earned=total_earned,
        shares_this_month=this_month,
        shares_change=change,
        monthly=monthly,
        data_types=data_type_distribution(frame),
        redeemed=int(metrics["redeemed"]),
        redemption_rate=metrics["redemption_rate"],
    )
