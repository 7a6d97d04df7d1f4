"""
Attempt-scoped order processing state machine.

One call to ``OrderProcessor.process`` is one attempt:

    routing -> building -> submitted -> confirmed      (success, returns outcome)
    routing -> failed                                  (quote fetch raised)
    routing -> building -> failed                      (trade execution raised)

Every attempt restarts at ``routing`` regardless of how earlier attempts
ended, and every event carries the attempt number, so a retried order
re-emits its lifecycle from scratch. Retries, backoff and concurrency belong
to the scheduler driving the processor, never to the processor itself.

Example:
    >>> processor = OrderProcessor(router=MockVenueRouter(fast=True), emitter=emitter)
    >>> outcome = await processor.process(
    ...     {"orderId": "o-1", "tokenIn": "SOL", "tokenOut": "USDC", "amountIn": 1.5},
    ...     previous_attempts_made=0,
    ... )
    >>> outcome.attempts
    1
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

from apps.order_worker.event_sinks import LifecycleEmitter
from apps.order_worker.metrics import (
    order_attempt_duration_seconds,
    order_attempts_total,
    order_venue_selected_total,
)
from libs.common.exceptions import OrderValidationError
from libs.common.logging import OrderLogContext
from libs.orders.models import (
    MISSING_ORDER_ID_MESSAGE,
    LifecycleEvent,
    LifecycleStatus,
    OrderIntent,
    OrderOutcome,
)
from libs.venues.models import DEFAULT_VENUES, Quote, VenueId
from libs.venues.router import VenueRouter, select_best_quote

logger = logging.getLogger(__name__)


class OrderProcessor:
    """
    Drives one order attempt through the venue router and both event sinks.

    Attributes:
        router: Venue router used for quotes and execution
        emitter: Dual-sink lifecycle emitter (never raises)
        venues: Venues queried each attempt, in canonical (tie-break) order

    Notes:
        - Exactly one of {outcome returned, error raised} per attempt
        - ``failed`` is emitted at most once, only on the raising path
        - Execution-path errors are re-raised unchanged for the scheduler
        - No locking: concurrent attempts touch different orders only
    """

    def __init__(
        self,
        router: VenueRouter,
        emitter: LifecycleEmitter,
        venues: Sequence[VenueId] = DEFAULT_VENUES,
    ) -> None:
        if not venues:
            raise ValueError("at least one venue is required")
        self.router = router
        self.emitter = emitter
        self.venues = tuple(venues)

    async def process(
        self,
        job: OrderIntent | Mapping[str, Any] | None,
        previous_attempts_made: int = 0,
    ) -> OrderOutcome:
        """
        Run one attempt for ``job``.

        Args:
            job: Order intent, or the raw scheduler job payload
            previous_attempts_made: Attempts already made for this order (0 first)

        Returns:
            Success record with ``attempts == previous_attempts_made + 1``

        Raises:
            OrderValidationError: Missing orderId or malformed payload; raised
                before any event is emitted
            Exception: Whatever the venue router raised, after ``failed`` was
                emitted
        """
        intent = self._coerce_intent(job)
        if previous_attempts_made < 0:
            raise OrderValidationError(
                f"previous_attempts_made must be >= 0, got {previous_attempts_made}"
            )
        attempt = previous_attempts_made + 1

        with OrderLogContext(intent.order_id, attempt):
            started = time.monotonic()
            logger.info(
                "order_attempt_started",
                extra={
                    "token_in": intent.token_in,
                    "token_out": intent.token_out,
                    "amount_in": intent.amount_in,
                },
            )
            try:
                outcome = await self._run_attempt(intent, attempt)
            except Exception as exc:
                error_message = str(exc) or type(exc).__name__
                logger.error(
                    "order_attempt_failed",
                    extra={"error": error_message, "error_type": type(exc).__name__},
                )
                await self._emit(intent, attempt, LifecycleStatus.FAILED, {"error": error_message})
                order_attempts_total.labels(outcome="failed").inc()
                raise
            finally:
                order_attempt_duration_seconds.observe(time.monotonic() - started)

            order_attempts_total.labels(outcome="filled").inc()
            logger.info(
                "order_attempt_completed",
                extra={"tx_hash": outcome.tx_hash, "venue_id": outcome.venue_id},
            )
            return outcome

    async def _run_attempt(self, intent: OrderIntent, attempt: int) -> OrderOutcome:
        await self._emit(intent, attempt, LifecycleStatus.ROUTING, {})
        quotes = await self._fetch_quotes(intent)

        chosen = select_best_quote(quotes)
        order_venue_selected_total.labels(venue=chosen.venue_id.value).inc()
        await self._emit(
            intent,
            attempt,
            LifecycleStatus.BUILDING,
            {
                "chosen": {
                    "venueId": chosen.venue_id.value,
                    "price": chosen.price,
                    "fee": chosen.fee,
                }
            },
        )

        result = await self.router.execute_trade(chosen.venue_id, intent)
        await self._emit(intent, attempt, LifecycleStatus.SUBMITTED, {"txHash": result.tx_hash})

        outcome = OrderOutcome(
            tx_hash=result.tx_hash,
            executed_price=result.executed_price,
            venue_id=chosen.venue_id.value,
            attempts=attempt,
        )
        confirmed = outcome.to_dict()
        del confirmed["status"]
        await self._emit(intent, attempt, LifecycleStatus.CONFIRMED, confirmed)
        return outcome

    async def _fetch_quotes(self, intent: OrderIntent) -> list[Quote]:
        """Request quotes from every venue concurrently.

        Results keep the canonical venue order. On the first failure the
        other pending requests are cancelled and the error propagates.
        """
        tasks = [
            asyncio.ensure_future(
                self.router.get_quote(venue, intent.token_in, intent.token_out, intent.amount_in)
            )
            for venue in self.venues
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            raise

    async def _emit(
        self,
        intent: OrderIntent,
        attempt: int,
        status: LifecycleStatus,
        payload: dict[str, Any],
    ) -> None:
        event = LifecycleEvent(
            order_id=intent.order_id, status=status, attempt=attempt, payload=payload
        )
        await self.emitter.emit(event)

    @staticmethod
    def _coerce_intent(job: OrderIntent | Mapping[str, Any] | None) -> OrderIntent:
        try:
            if isinstance(job, OrderIntent):
                if not job.order_id:
                    raise OrderValidationError(MISSING_ORDER_ID_MESSAGE)
                return job
            return OrderIntent.from_job_payload(job)
        except OrderValidationError as e:
            order_attempts_total.labels(outcome="rejected").inc()
            payload_keys = sorted(map(str, job)) if isinstance(job, Mapping) else None
            logger.error(
                "order_job_rejected",
                extra={"error": str(e), "payload_keys": payload_keys},
            )
            raise
