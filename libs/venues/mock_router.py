"""
Simulated venue router for local runs and tests.

Quotes are generated as ``base_price * (1 + jitter)`` with a per-venue jitter
band and a fixed per-venue fee; trade execution sleeps for a simulated
network/confirmation latency before returning a synthetic transaction hash.

Example:
    >>> router = MockVenueRouter(fast=True, seed=7)
    >>> quote = await router.get_quote(VenueId.A, "SOL", "USDC", 1.0)
    >>> 19.6 <= quote.price <= 20.4
    True
"""

from __future__ import annotations

import asyncio
import logging
import random
import secrets
from dataclasses import dataclass

from libs.common.exceptions import QuoteUnavailableError, TradeExecutionError
from libs.orders.models import OrderIntent
from libs.venues.models import ExecutionResult, Quote, VenueId

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VenueProfile:
    """Price behaviour of one simulated venue.

    The quoted multiplier is drawn uniformly from
    ``[jitter_low, jitter_low + jitter_width]``.
    """

    jitter_low: float
    jitter_width: float
    fee: float


DEFAULT_PROFILES: dict[VenueId, VenueProfile] = {
    VenueId.A: VenueProfile(jitter_low=0.98, jitter_width=0.04, fee=0.003),
    VenueId.B: VenueProfile(jitter_low=0.97, jitter_width=0.05, fee=0.002),
}

QUOTE_LATENCY_SECONDS = 0.2
EXECUTION_LATENCY_SECONDS = (2.0, 3.0)


def generate_mock_tx_hash(rng: random.Random | None = None) -> str:
    """Return a synthetic 0x-prefixed 32-hex-digit transaction hash."""
    if rng is None:
        return "0x" + secrets.token_hex(16)
    return "0x" + f"{rng.getrandbits(128):032x}"


class MockVenueRouter:
    """
    In-memory ``VenueRouter`` with simulated prices, latency and failures.

    Attributes:
        base_price: Reference price all venue quotes jitter around
        fast: Skip simulated latency (tests, demos)
        failure_rate: Probability in [0, 1] that any single call raises
        profiles: Per-venue jitter band and fee
    """

    def __init__(
        self,
        base_price: float = 20.0,
        fast: bool = False,
        failure_rate: float = 0.0,
        seed: int | None = None,
        profiles: dict[VenueId, VenueProfile] | None = None,
    ) -> None:
        if base_price <= 0:
            raise ValueError(f"base_price must be > 0, got {base_price}")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")

        self.base_price = base_price
        self.fast = fast
        self.failure_rate = failure_rate
        self.profiles = dict(profiles or DEFAULT_PROFILES)
        self._rng = random.Random(seed)
        self._seeded = seed is not None

    async def get_quote(
        self, venue_id: VenueId, token_in: str, token_out: str, amount_in: float
    ) -> Quote:
        profile = self._profile(venue_id)
        await self._sleep(QUOTE_LATENCY_SECONDS)

        if self._should_fail():
            logger.warning(
                "mock_quote_failed",
                extra={"venue_id": venue_id.value, "token_in": token_in, "token_out": token_out},
            )
            raise QuoteUnavailableError(f"venue {venue_id.value} quote timed out")

        multiplier = profile.jitter_low + self._rng.random() * profile.jitter_width
        return Quote(price=self.base_price * multiplier, fee=profile.fee, venue_id=venue_id)

    async def execute_trade(self, venue_id: VenueId, intent: OrderIntent) -> ExecutionResult:
        self._profile(venue_id)
        low, high = EXECUTION_LATENCY_SECONDS
        await self._sleep(low + self._rng.random() * (high - low))

        if self._should_fail():
            logger.warning(
                "mock_execution_failed",
                extra={"venue_id": venue_id.value, "order_id": intent.order_id},
            )
            raise TradeExecutionError(f"venue {venue_id.value} rejected the transaction")

        executed_price = self.base_price * (0.98 + self._rng.random() * 0.04)
        tx_hash = generate_mock_tx_hash(self._rng if self._seeded else None)
        return ExecutionResult(tx_hash=tx_hash, executed_price=executed_price, venue_id=venue_id)

    def _profile(self, venue_id: VenueId) -> VenueProfile:
        try:
            return self.profiles[venue_id]
        except KeyError:
            raise ValueError(f"unknown venue: {venue_id!r}") from None

    def _should_fail(self) -> bool:
        return self.failure_rate > 0 and self._rng.random() < self.failure_rate

    async def _sleep(self, seconds: float) -> None:
        if not self.fast:
            await asyncio.sleep(seconds)

    def __repr__(self) -> str:
        return (
            f"MockVenueRouter(base_price={self.base_price}, fast={self.fast}, "
            f"failure_rate={self.failure_rate})"
        )
