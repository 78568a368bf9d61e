"""
Eligibility of a partner request given the user's active categories and uploads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Optional, Protocol, Tuple

from .data_models import Partner, join_categories

REASON_CATEGORIES = "categories"
REASON_DATASETS = "datasets"
REASON_SELECTION = "selection"


class UploadEvidence(Protocol):
    def has_successful_upload(self, category: str) -> bool:
        ...


@dataclass(frozen=True)
class Eligibility:
    met: bool
    reason: Optional[str] = None
    missing: Tuple[str, ...] = ()

    def guidance(self) -> str:
        """
        Actionable message for the blocker, cheapest fix first.
        """

        if self.met:
            return "All requirements met."
        missing = ", ".join(self.missing)
        if self.reason == REASON_CATEGORIES:
            return f"Enable all required data categories first. Missing: {missing}"
        if self.reason == REASON_DATASETS:
            return (
                "Upload required datasets first. You need at least one dataset "
                f"for each required category. Missing: {missing}"
            )
        return f"Select at least one dataset for each required category. Missing: {missing}"


ELIGIBLE = Eligibility(met=True)


def evaluate(
    partner: Partner,
    active_categories: AbstractSet[str],
    datasets: UploadEvidence,
) -> Eligibility:
    """
    Return whether `partner` could be accepted right now.

    Category gating runs before dataset gating. The function has no side
    effects; equal inputs give equal results.
    """

    required = sorted(partner.required_categories)

    inactive = tuple(c for c in required if c not in active_categories)
    if inactive:
        return Eligibility(met=False, reason=REASON_CATEGORIES, missing=inactive)

    without_upload = tuple(c for c in required if not datasets.has_successful_upload(c))
    if without_upload:
        return Eligibility(met=False, reason=REASON_DATASETS, missing=without_upload)

    return ELIGIBLE


def describe_requirements(partner: Partner) -> str:
    return f"This partner requires: {join_categories(partner.required_categories)}"
