"""
State machine governing a partner's data-sharing request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .data_models import DatasetRecord, Partner, PartnerStatus, VerificationStatus
from .datasets import DatasetStore
from .eligibility import REASON_SELECTION, Eligibility, describe_requirements, evaluate
from .events import (
    EventBus,
    PartnerActivated,
    PartnerOffered,
    PartnerRejected,
    PartnerTransitioned,
    VerificationCancelled,
    VerificationFailed,
    VerificationStarted,
    publish_optional,
)

LOGGER = logging.getLogger(__name__)

LEGAL_TRANSITIONS: Dict[PartnerStatus, FrozenSet[PartnerStatus]] = {
    PartnerStatus.PENDING: frozenset(
        {PartnerStatus.VERIFICATION_PENDING, PartnerStatus.REJECTED}
    ),
    # Self-edge: a fresh invocation supersedes the one in flight.
    PartnerStatus.VERIFICATION_PENDING: frozenset(
        {
            PartnerStatus.VERIFICATION_PENDING,
            PartnerStatus.ACTIVE,
            PartnerStatus.PENDING,
            PartnerStatus.REJECTED,
        }
    ),
    PartnerStatus.ACTIVE: frozenset(),
    PartnerStatus.REJECTED: frozenset(),
}


class UnknownPartner(KeyError):
    """Raised when a partner id is not registered."""


class IllegalTransition(Exception):
    """Raised when an operation would take a partner along an illegal edge."""

    def __init__(self, partner_id: int, current: PartnerStatus, target: PartnerStatus):
        super().__init__(
            f"Partner {partner_id} cannot move from {current.value} to {target.value}"
        )
        self.partner_id = partner_id
        self.current = current
        self.target = target


class IneligiblePartner(Exception):
    """Raised when acceptance is requested without meeting the requirements."""

    def __init__(self, partner: Partner, eligibility: Eligibility):
        super().__init__(
            f"{partner.name}: {eligibility.guidance()} ({describe_requirements(partner)})"
        )
        self.partner_id = partner.id
        self.eligibility = eligibility


@dataclass(frozen=True)
class VerificationTicket:
    """
    Proof of one acceptance request; only the newest ticket's verdict counts.
    """

    partner_id: int
    token: int
    datasets: Tuple[DatasetRecord, ...]


class PartnerLifecycleStateMachine:
    """
    Owns every partner and moves it along the legal edges only.

    Each acceptance request issues a per-partner token that increases
    monotonically. A verdict is applied only when it carries the outstanding
    token; rejecting or cancelling invalidates it.
    """

    def __init__(
        self,
        datasets: DatasetStore,
        active_categories: AbstractSet[str],
        bus: Optional[EventBus] = None,
    ) -> None:
        self.datasets = datasets
        self.active_categories = active_categories
        self.bus = bus
        self._partners: Dict[int, Partner] = {}
        self._token_counter: Dict[int, int] = {}
        self._outstanding: Dict[int, int] = {}

    # -- registration ----------------------------------------------------

    def add_partner(self, partner: Partner, announce: bool = True) -> Partner:
        if partner.id in self._partners:
            raise ValueError(f"Partner {partner.id} is already registered")
        self._partners[partner.id] = partner
        publish_optional(self.bus, PartnerOffered(partner=partner.copy(), announce=announce))
        return partner

    def restore(self, partners: Iterable[Partner]) -> None:
        """
        Load persisted partners as-is, without events or transition checks.
        """

        for partner in partners:
            self._partners[partner.id] = partner

    # -- queries ---------------------------------------------------------

    def get(self, partner_id: int) -> Partner:
        try:
            return self._partners[partner_id]
        except KeyError:
            raise UnknownPartner(partner_id) from None

    def partners(self, status: Optional[PartnerStatus] = None) -> List[Partner]:
        return [
            partner
            for partner in self._partners.values()
            if status is None or partner.status is status
        ]

    def partner_for_reward(self, reward_id: str) -> Partner:
        for partner in self._partners.values():
            if partner.reward.id == reward_id:
                return partner
        raise UnknownPartner(reward_id)

    def outstanding_token(self, partner_id: int) -> Optional[int]:
        return self._outstanding.get(partner_id)

    def eligibility(self, partner_id: int) -> Eligibility:
        return evaluate(self.get(partner_id), self.active_categories, self.datasets)

    def pending_offers(self) -> List[Partner]:
        """
        Pending partners needing at least one active category, acceptable
        ones first; rejected partners never show up here.
        """

        candidates = [
            partner
            for partner in self.partners(PartnerStatus.PENDING)
            if partner.required_categories & set(self.active_categories)
        ]
        return sorted(candidates, key=lambda p: not self.eligibility(p.id).met)

    # -- transitions -----------------------------------------------------

    def _check_edge(self, partner: Partner, target: PartnerStatus) -> None:
        if target not in LEGAL_TRANSITIONS[partner.status]:
            raise IllegalTransition(partner.id, partner.status, target)

    def _commit(self, partner: Partner, target: PartnerStatus) -> None:
        previous = partner.status
        partner.status = target
        if previous is target:
            return
        LOGGER.info("Partner %s: %s -> %s", partner.id, previous.value, target.value)
        publish_optional(
            self.bus,
            PartnerTransitioned(partner=partner.copy(), previous=previous, current=target),
        )

    def _invalidate(self, partner_id: int) -> None:
        self._token_counter[partner_id] = self._token_counter.get(partner_id, 0) + 1
        self._outstanding.pop(partner_id, None)

    def reject(self, partner_id: int) -> Partner:
        partner = self.get(partner_id)
        self._check_edge(partner, PartnerStatus.REJECTED)
        if partner.status is PartnerStatus.VERIFICATION_PENDING:
            self._invalidate(partner_id)
            partner.verification_status = VerificationStatus.UNVERIFIED
        self._commit(partner, PartnerStatus.REJECTED)
        publish_optional(self.bus, PartnerRejected(partner=partner.copy()))
        return partner

    def request_acceptance(
        self, partner_id: int, selected_dataset_ids: Sequence[int]
    ) -> VerificationTicket:
        partner = self.get(partner_id)
        self._check_edge(partner, PartnerStatus.VERIFICATION_PENDING)

        eligibility = evaluate(partner, self.active_categories, self.datasets)
        if not eligibility.met:
            raise IneligiblePartner(partner, eligibility)

        selected: List[DatasetRecord] = []
        for dataset_id in dict.fromkeys(selected_dataset_ids):
            record = self.datasets.get(dataset_id)
            if record is not None and record.succeeded:
                selected.append(record)
        covered = {record.category for record in selected}
        uncovered = tuple(sorted(partner.required_categories - covered))
        if uncovered:
            raise IneligiblePartner(
                partner, Eligibility(met=False, reason=REASON_SELECTION, missing=uncovered)
            )

        token = self._token_counter.get(partner_id, 0) + 1
        self._token_counter[partner_id] = token
        self._outstanding[partner_id] = token
        partner.verification_status = VerificationStatus.PENDING
        self._commit(partner, PartnerStatus.VERIFICATION_PENDING)
        ticket = VerificationTicket(partner_id=partner_id, token=token, datasets=tuple(selected))
        publish_optional(
            self.bus,
            VerificationStarted(
                partner=partner.copy(),
                token=token,
                dataset_ids=tuple(record.id for record in selected),
            ),
        )
        return ticket

    def on_verification_result(
        self,
        partner_id: int,
        success: bool,
        token: int,
        reasons: Sequence[str] = (),
    ) -> bool:
        """
        Apply a verdict. Returns False when the token is stale and nothing
        changed. A successful verdict is downgraded to a failure when the
        partner's requirements are no longer met.
        """

        partner = self.get(partner_id)
        if self._outstanding.get(partner_id) != token:
            LOGGER.debug(
                "Dropping stale verification result for partner %s (token %s, outstanding %s)",
                partner_id,
                token,
                self._outstanding.get(partner_id),
            )
            return False

        if success:
            # Requirements may have changed while the verifier was running.
            eligibility = evaluate(partner, self.active_categories, self.datasets)
            if not eligibility.met:
                LOGGER.warning(
                    "Partner %s passed verification but no longer qualifies: %s",
                    partner_id,
                    eligibility.guidance(),
                )
                success = False
                reasons = (eligibility.guidance(),)

        target = PartnerStatus.ACTIVE if success else PartnerStatus.PENDING
        self._check_edge(partner, target)
        del self._outstanding[partner_id]
        if success:
            partner.verification_status = VerificationStatus.VERIFIED
            self._commit(partner, target)
            publish_optional(self.bus, PartnerActivated(partner=partner.copy()))
        else:
            partner.verification_status = VerificationStatus.FAILED
            self._commit(partner, target)
            publish_optional(
                self.bus, VerificationFailed(partner=partner.copy(), reasons=tuple(reasons))
            )
        return True

    def cancel_verification(self, partner_id: int) -> Partner:
        partner = self.get(partner_id)
        if partner.status is not PartnerStatus.VERIFICATION_PENDING:
            raise IllegalTransition(partner_id, partner.status, PartnerStatus.PENDING)
        self._invalidate(partner_id)
        partner.verification_status = VerificationStatus.UNVERIFIED
        self._commit(partner, PartnerStatus.PENDING)
        publish_optional(self.bus, VerificationCancelled(partner=partner.copy()))
        return partner
