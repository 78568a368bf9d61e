"""
Event source for new partner offers.

Offers arrive as `PartnerOffered` events on a queue and are registered
through the same path as bootstrap partners.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AbstractSet, Callable, Optional, Sequence, Set

import numpy as np

from .catalog import OFFER_POOL, PartnerTemplate
from .events import PartnerOffered

LOGGER = logging.getLogger(__name__)


class OfferFeed:
    """
    Draws unseen partners from a pool at random and queues them as offers.
    """

    def __init__(
        self,
        pool: Sequence[PartnerTemplate] = OFFER_POOL,
        rng: Optional[np.random.Generator] = None,
        id_start: int = 1000,
    ) -> None:
        self.pool = tuple(pool)
        self.rng = rng or np.random.default_rng()
        self.queue: "asyncio.Queue[PartnerOffered]" = asyncio.Queue()
        self._next_id = id_start
        self._offered: Set[str] = set()

    def draw(self, existing_names: AbstractSet[str]) -> Optional[PartnerOffered]:
        """
        Queue one offer for a partner neither known nor already offered.
        Returns None once the pool is exhausted.
        """

        available = [
            t for t in self.pool if t.name not in existing_names and t.name not in self._offered
        ]
        if not available:
            return None
        template = available[int(self.rng.integers(0, len(available)))]
        offer = PartnerOffered(partner=template.build(self._next_id))
        self._next_id += 1
        self._offered.add(template.name)
        self.queue.put_nowait(offer)
        return offer

    async def run(
        self, existing_names: Callable[[], AbstractSet[str]], interval: float
    ) -> None:
        """
        Draw an offer every `interval` seconds until the pool runs dry.
        """

        while True:
            await asyncio.sleep(interval)
            if self.draw(existing_names()) is None:
                LOGGER.info("Offer pool exhausted")
                return

    async def next_offer(self) -> PartnerOffered:
        return await self.queue.get()
