"""
In-process retrying scheduler driving the order processor.

Implements the delivery contract the processor relies on:

- Each attempt is delivered with an accurate ``previous_attempts_made``
- A raised error schedules a retry with exponential backoff
  (``base * 2 ** (n - 1)`` before retry n, capped) up to ``max_attempts``
- At most ``concurrency`` attempts execute at once across all orders;
  a slot is held only while an attempt runs, never during backoff
- Attempts of one order are strictly sequential
- Orders that exhaust their attempts are reported to ``on_exhausted``
  (wired to the durable store) and not re-delivered
- Validation failures are never retried

Example:
    >>> scheduler = OrderScheduler(processor.process, SchedulerConfig(concurrency=10))
    >>> results = await scheduler.run_all(payloads)
    >>> [r.state for r in results]
    ['completed', 'completed', 'failed']
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any, Literal, Protocol

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from apps.order_worker.config import SchedulerConfig
from apps.order_worker.metrics import order_active_attempts, orders_exhausted_total
from libs.common.exceptions import OrderValidationError
from libs.orders.models import OrderOutcome

logger = logging.getLogger(__name__)

MISSING_JOB_ORDER_ID_MESSAGE = "orderId must be provided in job payload"


class AttemptHandler(Protocol):
    """Processes one attempt; ``OrderProcessor.process`` satisfies this."""

    def __call__(
        self, job: Mapping[str, Any], previous_attempts_made: int
    ) -> Awaitable[OrderOutcome]: ...


ExhaustedCallback = Callable[[str, str, int], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class JobResult:
    """Terminal state of one scheduled order."""

    order_id: str
    state: Literal["completed", "failed"]
    attempts_made: int
    outcome: OrderOutcome | None = None
    error: str | None = None


class OrderScheduler:
    """
    Bounded, retrying scheduler for order jobs.

    Attributes:
        handler: Coroutine function run once per attempt
        config: Retry/backoff/concurrency policy
        on_exhausted: Awaited with (order_id, error, attempts) when an order
            fails its final attempt
        active: Attempts executing right now
        max_active: High-water mark of ``active``
    """

    def __init__(
        self,
        handler: AttemptHandler,
        config: SchedulerConfig,
        on_exhausted: ExhaustedCallback | None = None,
    ) -> None:
        self.handler = handler
        self.config = config
        self.on_exhausted = on_exhausted
        self.active = 0
        self.max_active = 0
        self._semaphore = asyncio.Semaphore(config.concurrency)
        self._in_flight: dict[str, asyncio.Task[JobResult]] = {}

    def submit(self, job: Mapping[str, Any]) -> asyncio.Task[JobResult]:
        """
        Schedule an order for processing.

        Returns the running task for this order if it is already in flight,
        so the same order never runs two attempts at once.

        Raises:
            OrderValidationError: If the payload has no orderId
        """
        order_id = job.get("orderId") if isinstance(job, Mapping) else None
        if not order_id:
            raise OrderValidationError(MISSING_JOB_ORDER_ID_MESSAGE)
        order_id = str(order_id)

        existing = self._in_flight.get(order_id)
        if existing is not None and not existing.done():
            logger.warning("order_already_in_flight", extra={"order_id": order_id})
            return existing

        task = asyncio.create_task(self._run_order(order_id, dict(job)), name=f"order:{order_id}")
        self._in_flight[order_id] = task
        task.add_done_callback(lambda t, oid=order_id: self._forget(oid, t))
        logger.info("order_job_scheduled", extra={"order_id": order_id})
        return task

    async def run_all(self, jobs: Iterable[Mapping[str, Any]]) -> list[JobResult]:
        """Submit every job and wait until each reaches a terminal state."""
        tasks = [self.submit(job) for job in jobs]
        return list(await asyncio.gather(*tasks))

    async def drain(self) -> None:
        """Wait for every in-flight order to finish."""
        pending = [task for task in self._in_flight.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run_order(self, order_id: str, job: dict[str, Any]) -> JobResult:
        attempts_made = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(
                multiplier=self.config.backoff_base_delay_seconds,
                max=self.config.backoff_max_delay_seconds,
            ),
            retry=retry_if_not_exception_type(OrderValidationError),
            before_sleep=partial(self._log_retry, order_id),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts_made = attempt.retry_state.attempt_number
                    outcome = await self._run_attempt(job, attempts_made - 1)
        except OrderValidationError as e:
            logger.error(
                "order_job_rejected",
                extra={"order_id": order_id, "error": str(e)},
            )
            return JobResult(order_id, "failed", attempts_made, error=str(e))
        except Exception as e:  # noqa: BLE001 - terminal failure is reported, not raised
            error = str(e) or type(e).__name__
            await self._handle_exhausted(order_id, error, attempts_made)
            return JobResult(order_id, "failed", attempts_made, error=error)

        logger.info(
            "order_job_completed",
            extra={"order_id": order_id, "attempts": attempts_made, "tx_hash": outcome.tx_hash},
        )
        return JobResult(order_id, "completed", attempts_made, outcome=outcome)

    async def _run_attempt(self, job: dict[str, Any], previous_attempts_made: int) -> OrderOutcome:
        async with self._semaphore:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            order_active_attempts.set(self.active)
            try:
                return await self.handler(job, previous_attempts_made)
            finally:
                self.active -= 1
                order_active_attempts.set(self.active)

    async def _handle_exhausted(self, order_id: str, error: str, attempts: int) -> None:
        orders_exhausted_total.inc()
        logger.error(
            "order_attempts_exhausted",
            extra={"order_id": order_id, "attempts": attempts, "error": error},
        )
        if self.on_exhausted is None:
            return
        try:
            await self.on_exhausted(order_id, error, attempts)
        except Exception:
            logger.exception("order_exhausted_callback_failed", extra={"order_id": order_id})

    def _log_retry(self, order_id: str, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "order_attempt_retry_scheduled",
            extra={
                "order_id": order_id,
                "attempt": retry_state.attempt_number,
                "delay_seconds": delay,
                "error": str(exc) if exc else None,
            },
        )

    def _forget(self, order_id: str, task: asyncio.Task[JobResult]) -> None:
        if self._in_flight.get(order_id) is task:
            del self._in_flight[order_id]
