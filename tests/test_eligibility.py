import asyncio

from conftest import make_file
from consent_rewards.catalog import initial_partners
from consent_rewards.eligibility import (
    ELIGIBLE,
    REASON_CATEGORIES,
    REASON_DATASETS,
    describe_requirements,
    evaluate,
)
from consent_rewards.validator import ValidatorVerdict


class Uploads:
    def __init__(self, *categories: str) -> None:
        self.categories = set(categories)
        self.lookups = 0

    def has_successful_upload(self, category: str) -> bool:
        self.lookups += 1
        return category in self.categories


def _air_nz():
    return initial_partners()[0]


def test_category_gate_runs_before_dataset_gate():
    partner = _air_nz()
    result = evaluate(partner, {"Travel Preferences"}, Uploads())

    assert not result.met
    assert result.reason == REASON_CATEGORIES
    assert result.missing == ("Booking History",)
    assert "Enable all required data categories first" in result.guidance()


def test_missing_uploads_are_reported_in_sorted_order():
    partner = _air_nz()
    result = evaluate(partner, {"Travel Preferences", "Booking History"}, Uploads())

    assert result.reason == REASON_DATASETS
    assert result.missing == ("Booking History", "Travel Preferences")
    assert result.guidance().startswith("Upload required datasets first")


def test_met_once_every_category_is_enabled_and_uploaded():
    partner = _air_nz()
    active = {"Travel Preferences", "Booking History", "Location"}
    assert evaluate(partner, active, Uploads("Travel Preferences", "Booking History")) == ELIGIBLE


def test_evaluate_is_pure():
    partner = _air_nz()
    active = frozenset({"Travel Preferences", "Booking History"})
    uploads = Uploads("Travel Preferences")

    first = evaluate(partner, active, uploads)
    second = evaluate(partner, active, uploads)

    assert first == second
    assert uploads.categories == {"Travel Preferences"}
    assert partner == _air_nz()


def test_failed_uploads_do_not_count(store, validator):
    validator.verdicts.append(ValidatorVerdict(ok=False, error="nope"))
    asyncio.run(store.upload("Booking History", make_file()))
    asyncio.run(store.upload("Travel Preferences", make_file()))

    result = evaluate(_air_nz(), {"Travel Preferences", "Booking History"}, store)
    assert result.missing == ("Booking History",)


def test_describe_requirements_lists_categories():
    assert describe_requirements(_air_nz()) == (
        "This partner requires: Booking History, Travel Preferences"
    )
