"""Tests for the retrying order scheduler.

Tests verify:
- previous_attempts_made is delivered accurately on every attempt
- Failed attempts are retried with exponential backoff up to max_attempts
- Exhausted orders are reported once and not re-delivered
- Validation errors are never retried
- Concurrency limit holds across orders; backoff never holds a slot
- Attempts of one order never overlap
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from apps.order_worker.config import SchedulerConfig
from apps.order_worker.scheduler import MISSING_JOB_ORDER_ID_MESSAGE, JobResult, OrderScheduler
from libs.common.exceptions import OrderValidationError, TradeExecutionError
from libs.orders.models import OrderOutcome


def _outcome(attempts: int = 1) -> OrderOutcome:
    return OrderOutcome(tx_hash="0xabc", executed_price=20.0, venue_id="A", attempts=attempts)


def _job(order_id: str = "order-1") -> dict:
    return {"orderId": order_id, "tokenIn": "SOL", "tokenOut": "USDC", "amountIn": 1}


@pytest.fixture()
def fast_config() -> SchedulerConfig:
    return SchedulerConfig(
        max_attempts=3, backoff_base_delay_ms=1, backoff_max_delay_ms=10, concurrency=10
    )


class TestRetries:
    """Test suite for retry and exhaustion behaviour."""

    @pytest.mark.asyncio()
    async def test_first_attempt_success(self, fast_config):
        """A successful first attempt completes with one attempt."""
        handler = AsyncMock(return_value=_outcome())
        scheduler = OrderScheduler(handler, fast_config)

        result = await scheduler.submit(_job())

        assert result == JobResult("order-1", "completed", 1, outcome=_outcome())
        handler.assert_awaited_once_with(_job(), 0)

    @pytest.mark.asyncio()
    async def test_previous_attempts_made_increments(self, fast_config):
        """Retries receive 0, 1, 2 as previous_attempts_made."""
        handler = AsyncMock(
            side_effect=[TradeExecutionError("one"), TradeExecutionError("two"), _outcome(3)]
        )
        scheduler = OrderScheduler(handler, fast_config)

        result = await scheduler.submit(_job())

        assert result.state == "completed"
        assert result.attempts_made == 3
        assert [c.args[1] for c in handler.await_args_list] == [0, 1, 2]

    @pytest.mark.asyncio()
    async def test_exhausted_after_max_attempts(self, fast_config):
        """An always-failing order stops after max_attempts and is reported once."""
        handler = AsyncMock(side_effect=TradeExecutionError("boom"))
        on_exhausted = AsyncMock()
        scheduler = OrderScheduler(handler, fast_config, on_exhausted=on_exhausted)

        result = await scheduler.submit(_job())

        assert result == JobResult("order-1", "failed", 3, error="boom")
        assert handler.await_count == 3
        on_exhausted.assert_awaited_once_with("order-1", "boom", 3)

    @pytest.mark.asyncio()
    async def test_single_attempt_policy(self):
        """max_attempts=1 never retries."""
        handler = AsyncMock(side_effect=TradeExecutionError("boom"))
        scheduler = OrderScheduler(handler, SchedulerConfig(max_attempts=1))

        result = await scheduler.submit(_job())

        assert result.state == "failed"
        assert handler.await_count == 1

    @pytest.mark.asyncio()
    async def test_validation_error_not_retried(self, fast_config):
        """Validation errors fail the order immediately without exhaustion."""
        handler = AsyncMock(side_effect=OrderValidationError("job missing orderId"))
        on_exhausted = AsyncMock()
        scheduler = OrderScheduler(handler, fast_config, on_exhausted=on_exhausted)

        result = await scheduler.submit(_job())

        assert result.state == "failed"
        assert result.error == "job missing orderId"
        assert handler.await_count == 1
        on_exhausted.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_exhausted_callback_error_is_logged(self, fast_config, caplog):
        """A failing exhaustion callback does not break the scheduler."""
        handler = AsyncMock(side_effect=TradeExecutionError("boom"))
        on_exhausted = AsyncMock(side_effect=RuntimeError("db down"))
        scheduler = OrderScheduler(handler, fast_config, on_exhausted=on_exhausted)

        with caplog.at_level(logging.ERROR, logger="apps.order_worker.scheduler"):
            result = await scheduler.submit(_job())

        assert result.state == "failed"
        assert "order_exhausted_callback_failed" in [r.getMessage() for r in caplog.records]


class TestBackoff:
    """Test suite for exponential backoff between attempts."""

    @pytest.mark.asyncio()
    async def test_delay_doubles_per_retry(self, caplog):
        """Retry n waits base * 2 ** (n - 1)."""
        config = SchedulerConfig(max_attempts=3, backoff_base_delay_ms=2, backoff_max_delay_ms=1000)
        handler = AsyncMock(side_effect=TradeExecutionError("boom"))
        scheduler = OrderScheduler(handler, config)

        with caplog.at_level(logging.WARNING, logger="apps.order_worker.scheduler"):
            await scheduler.submit(_job())

        delays = [
            r.delay_seconds
            for r in caplog.records
            if r.getMessage() == "order_attempt_retry_scheduled"
        ]
        assert delays == [pytest.approx(0.002), pytest.approx(0.004)]

    @pytest.mark.asyncio()
    async def test_delay_capped(self, caplog):
        """No single delay exceeds the configured maximum."""
        config = SchedulerConfig(max_attempts=4, backoff_base_delay_ms=4, backoff_max_delay_ms=5)
        handler = AsyncMock(side_effect=TradeExecutionError("boom"))
        scheduler = OrderScheduler(handler, config)

        with caplog.at_level(logging.WARNING, logger="apps.order_worker.scheduler"):
            await scheduler.submit(_job())

        delays = [
            r.delay_seconds
            for r in caplog.records
            if r.getMessage() == "order_attempt_retry_scheduled"
        ]
        assert delays == [pytest.approx(0.004), pytest.approx(0.005), pytest.approx(0.005)]


class TestConcurrency:
    """Test suite for the concurrency limit and per-order sequencing."""

    @pytest.mark.asyncio()
    async def test_active_attempts_bounded(self):
        """Never more than `concurrency` attempts run at once."""
        config = SchedulerConfig(concurrency=3, backoff_base_delay_ms=1)

        async def handler(job, previous_attempts_made):
            await asyncio.sleep(0.01)
            return _outcome()

        scheduler = OrderScheduler(handler, config)

        results = await scheduler.run_all([_job(f"order-{i}") for i in range(20)])

        assert all(r.state == "completed" for r in results)
        assert 1 < scheduler.max_active <= 3
        assert scheduler.active == 0

    @pytest.mark.asyncio()
    async def test_backoff_does_not_hold_a_slot(self):
        """While one order waits out its backoff another order can run."""
        config = SchedulerConfig(
            concurrency=1, backoff_base_delay_ms=200, backoff_max_delay_ms=200
        )
        calls: list = []

        async def handler(job, previous_attempts_made):
            calls.append((job["orderId"], previous_attempts_made))
            if job["orderId"] == "slow" and previous_attempts_made == 0:
                raise TradeExecutionError("retry me")
            return _outcome(previous_attempts_made + 1)

        scheduler = OrderScheduler(handler, config)

        await scheduler.run_all([_job("slow"), _job("fast")])

        assert calls.index(("fast", 0)) < calls.index(("slow", 1))

    @pytest.mark.asyncio()
    async def test_attempts_of_one_order_never_overlap(self, fast_config):
        """Duplicate submissions share the in-flight task."""
        running: dict = {}
        overlaps: list = []

        async def handler(job, previous_attempts_made):
            order_id = job["orderId"]
            if running.get(order_id):
                overlaps.append(order_id)
            running[order_id] = True
            await asyncio.sleep(0.01)
            running[order_id] = False
            if previous_attempts_made < 1:
                raise TradeExecutionError("again")
            return _outcome(previous_attempts_made + 1)

        scheduler = OrderScheduler(handler, fast_config)

        first = scheduler.submit(_job())
        second = scheduler.submit(_job())
        assert first is second

        result = await first
        await scheduler.drain()

        assert overlaps == []
        assert result.attempts_made == 2

    @pytest.mark.asyncio()
    async def test_order_can_be_resubmitted_after_completion(self, fast_config):
        """A finished order no longer blocks a new submission."""
        handler = AsyncMock(return_value=_outcome())
        scheduler = OrderScheduler(handler, fast_config)

        first = await scheduler.submit(_job())
        await asyncio.sleep(0)
        second = await scheduler.submit(_job())

        assert first.state == second.state == "completed"
        assert handler.await_count == 2


class TestSubmitValidation:
    """Test suite for job payload checks at submission."""

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "job", [None, {}, {"orderId": ""}, {"orderId": None, "tokenIn": "SOL"}, ["x"]]
    )
    async def test_missing_order_id_rejected(self, fast_config, job):
        scheduler = OrderScheduler(AsyncMock(), fast_config)

        with pytest.raises(OrderValidationError, match=MISSING_JOB_ORDER_ID_MESSAGE):
            scheduler.submit(job)

    @pytest.mark.asyncio()
    async def test_drain_with_nothing_in_flight(self, fast_config):
        scheduler = OrderScheduler(AsyncMock(), fast_config)

        await scheduler.drain()
