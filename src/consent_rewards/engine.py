"""
Engine facade: the single serializable state container the UI dispatches to
and subscribes to.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Set

import numpy as np

from .catalog import initial_partners
from .categories import CategoryRegistry
from .config import EngineConfig
from .data_models import DatasetRecord, Partner, PartnerStatus, VoucherRecord
from .datasets import DatasetStore
from .eligibility import Eligibility
from .emitter import SideEffectEmitter
from .events import CategoryToggled, EngineEvent, EventBus
from .ledger import RewardLedger
from .monitoring import DashboardStats, dashboard_stats
from .offers import OfferFeed
from .persistence import (
    EngineSnapshot,
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    PersistenceAdapter,
)
from .state_machine import PartnerLifecycleStateMachine
from .validator import DatasetValidator, HttpDatasetValidator, UploadFile
from .verification import (
    SimulatedVerifier,
    VerificationHandle,
    VerificationOrchestrator,
    Verifier,
)

LOGGER = logging.getLogger(__name__)


class RewardsEngine:
    """
    Wires the components together around one event bus.

    Every mutation is applied to in-memory state synchronously; the
    persistence flush runs on the next loop iteration when an event loop is
    running, or immediately otherwise.
    """

    def __init__(
        self,
        config: EngineConfig,
        adapter: PersistenceAdapter,
        validator: DatasetValidator,
        verifier: Verifier,
        registry: Optional[CategoryRegistry] = None,
    ) -> None:
        self.config = config
        self.adapter = adapter
        self.registry = registry or CategoryRegistry()
        self.bus = EventBus()

        dataset_seed, ledger_seed, offer_seed = np.random.SeedSequence(config.seed).spawn(3)
        self.dataset_rng = np.random.default_rng(dataset_seed)
        self.ledger_rng = np.random.default_rng(ledger_seed)
        self.offer_rng = np.random.default_rng(offer_seed)
        self.validator = validator
        self.verifier = verifier

        self.active_categories: Set[str] = set()
        self.emitter = SideEffectEmitter(
            preferences=config.notifications,
            notification_cap=config.notification_cap,
            activity_cap=config.activity_cap,
        )
        self.emitter.attach(self.bus)
        self.bus.subscribe(self._on_event)

        self._flush_loop: Optional[asyncio.AbstractEventLoop] = None
        self.corrupt_keys: List[str] = []
        self._wire(EngineSnapshot())

    @classmethod
    def boot(
        cls,
        config: Optional[EngineConfig] = None,
        store: Optional[KeyValueStore] = None,
        validator: Optional[DatasetValidator] = None,
        verifier: Optional[Verifier] = None,
    ) -> "RewardsEngine":
        """
        Build an engine and load persisted state. Partners fall back to the
        bootstrap catalogue when none were persisted.
        """

        config = config or EngineConfig()
        if store is None:
            store = (
                FileKeyValueStore(config.storage_dir)
                if config.storage_dir is not None
                else InMemoryKeyValueStore()
            )
        engine = cls(
            config,
            PersistenceAdapter(store, prefix=config.key_prefix),
            validator or HttpDatasetValidator(config.validator_url, timeout=config.validator_timeout),
            verifier or SimulatedVerifier(delay=config.verification_delay),
        )
        engine.restore(engine.adapter.load())
        LOGGER.info(
            "Engine booted with %d partners, %d datasets, %d vouchers",
            len(engine.machine.partners()),
            len(engine.datasets),
            len(engine.ledger),
        )
        return engine

    # -- state container -------------------------------------------------

    def _wire(self, snapshot: EngineSnapshot) -> None:
        self.corrupt_keys = list(snapshot.corrupt_keys)
        self.active_categories.clear()
        self.active_categories.update(c for c in snapshot.active_categories if c in self.registry)
        self.datasets = DatasetStore(
            self.registry,
            self.validator,
            rng=self.dataset_rng,
            bus=self.bus,
            records=snapshot.datasets,
        )
        self.machine = PartnerLifecycleStateMachine(self.datasets, self.active_categories, bus=self.bus)
        self.machine.restore(snapshot.partners or initial_partners())
        self.orchestrator = VerificationOrchestrator(self.machine, self.verifier)
        self.ledger = RewardLedger(
            self.machine, rng=self.ledger_rng, bus=self.bus, vouchers=snapshot.vouchers.values()
        )
        self.emitter.restore(snapshot.notifications, snapshot.activity, snapshot.transactions)

    def restore(self, snapshot: EngineSnapshot) -> None:
        """
        Replace the in-memory state with `snapshot`; in-flight verifications
        are forgotten.
        """

        self._wire(snapshot)

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            partners=[partner.copy() for partner in self.machine.partners()],
            datasets=self.datasets.records(),
            active_categories=set(self.active_categories),
            vouchers=self.ledger.vouchers(),
            notifications=list(self.emitter.notifications),
            activity=list(self.emitter.activity),
            transactions=list(self.emitter.transactions),
        )

    def flush(self) -> None:
        self._flush_loop = None
        self.adapter.save(self.snapshot())

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        # A flush left pending on a loop that has since closed never runs.
        if self._flush_loop is not loop:
            self._flush_loop = loop
            loop.call_soon(self.flush)

    def _on_event(self, event: EngineEvent) -> None:
        self._schedule_flush()

    def subscribe(self, subscriber: Callable[[EngineEvent], None]) -> Callable[[], None]:
        return self.bus.subscribe(subscriber)

    # -- categories ------------------------------------------------------

    def set_category(self, category_id: str, enabled: bool) -> None:
        self.registry.by_id(category_id)
        if enabled == (category_id in self.active_categories):
            return
        if enabled:
            self.active_categories.add(category_id)
        else:
            self.active_categories.discard(category_id)
        self.bus.publish(CategoryToggled(category_id=category_id, enabled=enabled))

    def toggle_category(self, category_id: str) -> bool:
        enabled = category_id not in self.active_categories
        self.set_category(category_id, enabled)
        return enabled

    # -- datasets --------------------------------------------------------

    async def upload(self, category: str, file: UploadFile) -> DatasetRecord:
        return await self.datasets.upload(category, file)

    def remove_dataset(self, dataset_id: int) -> DatasetRecord:
        return self.datasets.remove(dataset_id)

    # -- partners --------------------------------------------------------

    def evaluate(self, partner_id: int) -> Eligibility:
        return self.machine.eligibility(partner_id)

    def pending_offers(self) -> List[Partner]:
        return self.machine.pending_offers()

    def start_verification(
        self, partner_id: int, selected_dataset_ids: Sequence[int]
    ) -> VerificationHandle:
        return self.orchestrator.start(partner_id, selected_dataset_ids)

    def cancel_verification(self, partner_id: int) -> Partner:
        handle = self.orchestrator.in_flight(partner_id)
        if handle is not None and handle.cancel():
            return self.machine.get(partner_id)
        return self.machine.cancel_verification(partner_id)

    def reject(self, partner_id: int) -> Partner:
        return self.machine.reject(partner_id)

    def offer(self, partner: Partner, announce: bool = True) -> Partner:
        known = {p.id for p in self.machine.partners()}
        if partner.id in known:
            partner = replace(partner, id=max(known) + 1)
        return self.machine.add_partner(partner, announce=announce)

    def offer_feed(self) -> OfferFeed:
        start = max((p.id for p in self.machine.partners()), default=0) + 1
        return OfferFeed(rng=self.offer_rng, id_start=start)

    def partner_names(self) -> Set[str]:
        return {partner.name for partner in self.machine.partners()}

    async def consume_offers(self, feed: OfferFeed, limit: Optional[int] = None) -> int:
        """
        Register offers from `feed` as they arrive. Returns after `limit`
        offers, or runs until cancelled.
        """

        consumed = 0
        while limit is None or consumed < limit:
            event = await feed.next_offer()
            self.offer(event.partner, announce=event.announce)
            consumed += 1
        return consumed

    # -- rewards ---------------------------------------------------------

    def redeem(self, reward_id: str) -> VoucherRecord:
        partner = self.machine.partner_for_reward(reward_id)
        return self.ledger.redeem(partner.reward)

    def dashboard(self, now: Optional[datetime] = None) -> DashboardStats:
        return dashboard_stats(
            self.emitter.transactions,
            self.ledger.vouchers().values(),
            active_partners=len(self.machine.partners(PartnerStatus.ACTIVE)),
            now=now,
        )

    # -- notifications ---------------------------------------------------

    def set_notification_preference(self, kind: str, enabled: bool) -> None:
        self.config.notifications.set(kind, enabled)

    def mark_notification_read(self, notification_id: str) -> None:
        self.emitter.mark_read(notification_id)
        self._schedule_flush()

    def mark_all_notifications_read(self) -> None:
        self.emitter.mark_all_read()
        self._schedule_flush()

    def clear_notification(self, notification_id: str) -> None:
        self.emitter.clear_notification(notification_id)
        self._schedule_flush()

    def reset(self) -> None:
        """
        Forget every persisted collection and start from the bootstrap state.
        """

        self.adapter.clear()
        self._wire(EngineSnapshot())
