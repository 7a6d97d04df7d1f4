"""Venue router contract and best-venue selection.

The order processor depends only on the ``VenueRouter`` protocol: async,
parameterized by venue, and allowed to fail. Any failure raised by
``get_quote`` or ``execute_trade`` is treated as an execution-path failure
of the current attempt.

Example:
    >>> quotes = [
    ...     Quote(price=100.0, fee=0.003, venue_id=VenueId.A),
    ...     Quote(price=98.0, fee=0.002, venue_id=VenueId.B),
    ... ]
    >>> select_best_quote(quotes).venue_id
    <VenueId.B: 'B'>
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from libs.orders.models import OrderIntent
from libs.venues.models import ExecutionResult, Quote, VenueId


class VenueRouter(Protocol):
    """Quote retrieval and trade execution over one or more venues."""

    async def get_quote(
        self, venue_id: VenueId, token_in: str, token_out: str, amount_in: float
    ) -> Quote:
        """Fetch a quote from ``venue_id``. May raise on network/timeout errors."""
        ...

    async def execute_trade(self, venue_id: VenueId, intent: OrderIntent) -> ExecutionResult:
        """Execute ``intent`` on ``venue_id``. May raise."""
        ...


def select_best_quote(quotes: Sequence[Quote]) -> Quote:
    """Return the quote with the lowest effective cost.

    Quotes are compared in the order given; on an exact tie the earlier quote
    wins, so with the canonical (A, B) ordering venue A wins ties.

    Raises:
        ValueError: If ``quotes`` is empty
    """
    if not quotes:
        raise ValueError("cannot select a venue from zero quotes")

    best = quotes[0]
    for quote in quotes[1:]:
        if quote.effective_cost < best.effective_cost:
            best = quote
    return best
