"""
Shared fixtures for order worker tests.

Provides in-memory stand-ins for the two event sinks and a scripted venue
router, so processor and scheduler tests run without Postgres, Redis or
simulated latency.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import pytest

from libs.common.exceptions import SinkError, TradeExecutionError
from libs.common.logging import clear_order_context
from libs.orders.models import OrderIntent
from libs.venues.models import ExecutionResult, Quote, VenueId


class RecordingSink:
    """Event sink that records what it receives and can be told to fail.

    ``journal`` may be shared between sinks to observe write ordering.
    """

    def __init__(
        self,
        sink_name: str,
        fail_statuses: Iterable[str] = (),
        journal: list[tuple[str, str, str]] | None = None,
    ) -> None:
        self.sink_name = sink_name
        self.fail_statuses = set(fail_statuses)
        self.journal = journal if journal is not None else []
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def emit(self, order_id: str, status: str, payload: Mapping[str, Any]) -> None:
        self.journal.append((self.sink_name, order_id, status))
        if "*" in self.fail_statuses or status in self.fail_statuses:
            raise SinkError(self.sink_name, f"{status} unavailable")
        self.events.append((order_id, status, dict(payload)))

    def statuses(self, order_id: str | None = None) -> list[str]:
        return [s for oid, s, _ in self.events if order_id is None or oid == order_id]

    def payloads(self, order_id: str, status: str) -> list[dict[str, Any]]:
        return [p for oid, s, p in self.events if oid == order_id and s == status]


class ScriptedVenueRouter:
    """Venue router with fixed quotes and scripted execution failures.

    Args:
        quotes: venue -> (price, fee)
        failing_quote_venues: Venues whose get_quote always raises
        execute_failures: order_id -> number of failing executions before
            success; a negative count fails forever
        execute_delay: Seconds each execution takes
    """

    def __init__(
        self,
        quotes: Mapping[VenueId, tuple[float, float]] | None = None,
        failing_quote_venues: Iterable[VenueId] = (),
        execute_failures: Mapping[str, int] | None = None,
        execute_delay: float = 0.0,
    ) -> None:
        self.quotes = dict(
            quotes or {VenueId.A: (20.0, 0.003), VenueId.B: (20.5, 0.002)}
        )
        self.failing_quote_venues = set(failing_quote_venues)
        self.execute_failures = dict(execute_failures or {})
        self.execute_delay = execute_delay
        self.quote_calls: list[VenueId] = []
        self.execute_calls: list[tuple[VenueId, str]] = []

    async def get_quote(
        self, venue_id: VenueId, token_in: str, token_out: str, amount_in: float
    ) -> Quote:
        self.quote_calls.append(venue_id)
        await asyncio.sleep(0)
        if venue_id in self.failing_quote_venues:
            raise ConnectionError(f"venue {venue_id.value} unreachable")
        price, fee = self.quotes[venue_id]
        return Quote(price=price, fee=fee, venue_id=venue_id)

    async def execute_trade(self, venue_id: VenueId, intent: OrderIntent) -> ExecutionResult:
        self.execute_calls.append((venue_id, intent.order_id))
        await asyncio.sleep(self.execute_delay)
        remaining = self.execute_failures.get(intent.order_id, 0)
        if remaining != 0:
            if remaining > 0:
                self.execute_failures[intent.order_id] = remaining - 1
            raise TradeExecutionError(f"venue {venue_id.value} rejected {intent.order_id}")
        price, _ = self.quotes[venue_id]
        attempt_no = sum(1 for _, oid in self.execute_calls if oid == intent.order_id)
        return ExecutionResult(
            tx_hash=f"0x{intent.order_id}-{attempt_no}",
            executed_price=price,
            venue_id=venue_id,
        )


@pytest.fixture()
def make_sink() -> type[RecordingSink]:
    """Factory for recording sinks."""
    return RecordingSink


@pytest.fixture()
def make_router() -> type[ScriptedVenueRouter]:
    """Factory for scripted venue routers."""
    return ScriptedVenueRouter


@pytest.fixture()
def order_payload() -> dict[str, Any]:
    """Valid scheduler job payload."""
    return {"orderId": "order-1", "tokenIn": "SOL", "tokenOut": "USDC", "amountIn": 1.5}


@pytest.fixture(autouse=True)
def _reset_order_context():
    """Keep order/attempt context variables from leaking between tests."""
    clear_order_context()
    yield
    clear_order_context()
