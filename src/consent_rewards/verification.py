"""
Asynchronous verification step gating the Pending -> Active transition.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .data_models import DatasetRecord, Partner, PartnerStatus
from .state_machine import PartnerLifecycleStateMachine, VerificationTicket

LOGGER = logging.getLogger(__name__)

MIN_SIZE_BYTES = 500
MAX_SIZE_BYTES = 20 * 1024 * 1024

EXTENSION_WHITELIST: Mapping[str, Tuple[str, ...]] = {
    "Travel Preferences": ("csv", "xlsx", "xls", "pdf", "txt"),
    "Location": ("csv", "xlsx", "xls", "json", "txt"),
    "Booking History": ("csv", "xlsx", "xls", "pdf"),
}


@dataclass(frozen=True)
class VerificationVerdict:
    success: bool
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class VerificationOutcome:
    """
    What happened to one invocation. `applied` is False when the verdict
    arrived stale or the invocation was cancelled.
    """

    partner_id: int
    token: int
    success: bool
    applied: bool
    reasons: Tuple[str, ...] = ()


class Verifier:
    """Interface for anything producing an accept/reject verdict."""

    async def verify(
        self, partner: Partner, datasets: Sequence[DatasetRecord]
    ) -> VerificationVerdict:
        raise NotImplementedError


class SimulatedVerifier(Verifier):
    """
    Passes every request after a fixed delay.
    """

    def __init__(self, delay: float = 2.0) -> None:
        self.delay = delay

    async def verify(
        self, partner: Partner, datasets: Sequence[DatasetRecord]
    ) -> VerificationVerdict:
        await asyncio.sleep(self.delay)
        return VerificationVerdict(success=True)


class StrictVerifier(Verifier):
    """
    Per-category file checks: each required category needs one supplied
    dataset with an allowed extension and a plausible size.
    """

    def __init__(
        self,
        whitelist: Mapping[str, Sequence[str]] = EXTENSION_WHITELIST,
        min_size: int = MIN_SIZE_BYTES,
        max_size: int = MAX_SIZE_BYTES,
    ) -> None:
        self.whitelist = {category: tuple(exts) for category, exts in whitelist.items()}
        self.min_size = min_size
        self.max_size = max_size

    def check(self, record: DatasetRecord, category: str) -> List[str]:
        reasons: List[str] = []
        allowed = self.whitelist.get(category)
        if allowed is not None and record.file_type.lower() not in allowed:
            reasons.append(
                f'File "{record.file_name}" has extension ".{record.file_type}". '
                f"Allowed for {category}: {', '.join(allowed)}"
            )
        if record.size_bytes < self.min_size:
            reasons.append(f'"{record.file_name}" is too small ({record.size_bytes} bytes).')
        if record.size_bytes > self.max_size:
            reasons.append(
                f'"{record.file_name}" is too large ({record.size_bytes} bytes > {self.max_size}).'
            )
        if record.category.lower() != category.lower():
            reasons.append(f'"{record.file_name}" labeled "{record.category}" not "{category}".')
        return reasons

    def review(
        self, partner: Partner, datasets: Sequence[DatasetRecord]
    ) -> Tuple[Dict[str, bool], List[str]]:
        per_category: Dict[str, bool] = {}
        reasons: List[str] = []
        for category in sorted(partner.required_categories):
            in_category = [d for d in datasets if d.category.lower() == category.lower()]
            if not in_category:
                per_category[category] = False
                reasons.append(f'No file provided for required category "{category}".')
                continue
            failures: List[str] = []
            for record in in_category:
                problems = self.check(record, category)
                if not problems:
                    break
                failures.extend(problems)
            else:
                per_category[category] = False
                reasons.extend(failures)
                continue
            per_category[category] = True
        return per_category, reasons

    async def verify(
        self, partner: Partner, datasets: Sequence[DatasetRecord]
    ) -> VerificationVerdict:
        per_category, reasons = self.review(partner, datasets)
        return VerificationVerdict(success=all(per_category.values()), reasons=tuple(reasons))


class VerificationHandle:
    """
    First-class handle on one verification invocation.

    `cancel()` is logical: the verifier call keeps running but its verdict
    is dropped and the partner returns to Pending straight away.
    """

    def __init__(
        self,
        ticket: VerificationTicket,
        task: "asyncio.Task[VerificationOutcome]",
        machine: PartnerLifecycleStateMachine,
    ) -> None:
        self.ticket = ticket
        self._task = task
        self._machine = machine
        self.cancelled = False

    @property
    def partner_id(self) -> int:
        return self.ticket.partner_id

    @property
    def token(self) -> int:
        return self.ticket.token

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """
        Abandon this invocation. Returns False if it had already settled or
        been superseded.
        """

        if self.cancelled or self._task.done():
            return False
        self.cancelled = True
        if self._machine.outstanding_token(self.partner_id) == self.token:
            self._machine.cancel_verification(self.partner_id)
        return True

    async def result(self) -> VerificationOutcome:
        return await asyncio.shield(self._task)


class VerificationOrchestrator:
    """
    Runs the verifier for an acceptance request and delivers its verdict to
    the state machine exactly once.
    """

    def __init__(self, machine: PartnerLifecycleStateMachine, verifier: Verifier) -> None:
        self.machine = machine
        self.verifier = verifier
        self._in_flight: Dict[int, VerificationHandle] = {}

    def start(self, partner_id: int, selected_dataset_ids: Sequence[int]) -> VerificationHandle:
        """
        Move the partner to VerificationPending and schedule the verifier.
        Must be called with a running event loop.
        """

        loop = asyncio.get_running_loop()
        ticket = self.machine.request_acceptance(partner_id, selected_dataset_ids)
        partner = self.machine.get(partner_id).copy()
        task = loop.create_task(self._run(ticket, partner))
        handle = VerificationHandle(ticket, task, self.machine)
        self._in_flight[partner_id] = handle
        return handle

    async def verify(
        self, partner_id: int, selected_dataset_ids: Sequence[int]
    ) -> VerificationOutcome:
        return await self.start(partner_id, selected_dataset_ids).result()

    def in_flight(self, partner_id: int) -> Optional[VerificationHandle]:
        handle = self._in_flight.get(partner_id)
        if handle is None or handle.done():
            return None
        return handle

    async def _run(self, ticket: VerificationTicket, partner: Partner) -> VerificationOutcome:
        try:
            verdict = await self.verifier.verify(partner, ticket.datasets)
        except Exception as exc:
            LOGGER.warning("Verifier failed for partner %s: %s", ticket.partner_id, exc)
            verdict = VerificationVerdict(success=False, reasons=(f"Service error: {exc}",))

        applied = self.machine.on_verification_result(
            ticket.partner_id, verdict.success, ticket.token, verdict.reasons
        )
        handle = self._in_flight.get(ticket.partner_id)
        if handle is not None and handle.token == ticket.token:
            del self._in_flight[ticket.partner_id]
        success = verdict.success
        if applied:
            success = self.machine.get(ticket.partner_id).status is PartnerStatus.ACTIVE
        return VerificationOutcome(
            partner_id=ticket.partner_id,
            token=ticket.token,
            success=success,
            applied=applied,
            reasons=verdict.reasons,
        )
