"""
consent_rewards
===============

Lifecycle engine for data-sharing consent and rewards.

A user enables data categories, uploads datasets that an external validator
judges, and accepts partner requests. Each acceptance passes through an
asynchronous verification step before the partner becomes active and its
reward can be redeemed for a voucher code. Every step is narrated as
notifications and activity-log entries, and the whole state is persisted
per collection so that one corrupt key never takes the others down.
"""

from . import (
    account,
    catalog,
    categories,
    config,
    data_models,
    datasets,
    eligibility,
    emitter,
    engine,
    events,
    ledger,
    monitoring,
    offers,
    persistence,
    state_machine,
    validator,
    verification,
)
from .engine import RewardsEngine

__all__ = [
    "RewardsEngine",
    "account",
    "catalog",
    "categories",
    "config",
    "data_models",
    "datasets",
    "eligibility",
    "emitter",
    "engine",
    "events",
    "ledger",
    "monitoring",
    "offers",
    "persistence",
    "state_machine",
    "validator",
    "verification",
]
