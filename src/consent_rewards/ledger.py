"""
Reward redemption ledger issuing voucher codes exactly once per reward.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import numpy as np

from .data_models import PartnerStatus, Reward, VerificationStatus, VoucherRecord, utc_now
from .events import EventBus, RewardRedeemed, publish_optional
from .state_machine import PartnerLifecycleStateMachine

LOGGER = logging.getLogger(__name__)

BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
SUFFIX_LENGTH = 6


class RedemptionForbidden(Exception):
    """Raised when a reward is redeemed before its partner is verified and active."""


class RewardLedger:
    """
    Keyed by reward id. Once a voucher exists for a reward it is returned
    unchanged by every later redemption.
    """

    def __init__(
        self,
        machine: PartnerLifecycleStateMachine,
        rng: Optional[np.random.Generator] = None,
        bus: Optional[EventBus] = None,
        vouchers: Iterable[VoucherRecord] = (),
    ) -> None:
        self.machine = machine
        self.rng = rng or np.random.default_rng()
        self.bus = bus
        self._vouchers: Dict[str, VoucherRecord] = {v.reward_id: v for v in vouchers}

    def generate_code(self, reward_id: str) -> str:
        prefix = reward_id[:3].upper()
        issued = {voucher.code for voucher in self._vouchers.values()}
        while True:
            indices = self.rng.integers(0, len(BASE36_ALPHABET), size=SUFFIX_LENGTH)
            code = f"{prefix}-{''.join(BASE36_ALPHABET[i] for i in indices)}"
            if code not in issued:
                return code
            LOGGER.warning("Voucher code collision on %s, regenerating", code)

    def redeem(self, reward: Reward) -> VoucherRecord:
        existing = self._vouchers.get(reward.id)
        if existing is not None:
            return existing

        partner = self.machine.partner_for_reward(reward.id)
        if partner.status is not PartnerStatus.ACTIVE:
            raise RedemptionForbidden(
                f"{reward.title} cannot be redeemed until {partner.name} is active "
                f"(currently {partner.status.value})"
            )
        if partner.verification_status is VerificationStatus.PENDING:
            raise RedemptionForbidden(f"{partner.name} verification is still in progress")

        voucher = VoucherRecord(
            reward_id=reward.id, code=self.generate_code(reward.id), issued_at=utc_now()
        )
        self._vouchers[reward.id] = voucher
        LOGGER.info("Issued voucher for reward %s", reward.id)
        publish_optional(
            self.bus, RewardRedeemed(voucher=voucher, reward=reward, partner_name=partner.name)
        )
        return voucher

    def voucher_for(self, reward_id: str) -> Optional[VoucherRecord]:
        return self._vouchers.get(reward_id)

    def is_redeemed(self, reward_id: str) -> bool:
        return reward_id in self._vouchers

    def vouchers(self) -> Dict[str, VoucherRecord]:
        return dict(self._vouchers)

    def available_rewards(self) -> List[Reward]:
        """
        Rewards of active partners, unredeemed first, otherwise in partner order.
        """

        rewards = [partner.reward for partner in self.machine.partners(PartnerStatus.ACTIVE)]
        return sorted(rewards, key=lambda reward: self.is_redeemed(reward.id))

    def __len__(self) -> int:
        return len(self._vouchers)
