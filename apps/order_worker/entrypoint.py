"""Order worker entrypoint and composition root.

Owns the long-lived connection handles (Postgres pool, Redis client),
injects them into the sinks, and wires router -> processor -> scheduler.
Handles are created explicitly and closed explicitly; nothing here is a
module-level singleton.

Usage:
    python -m apps.order_worker.entrypoint --demo 20
    python -m apps.order_worker.entrypoint --orders orders.jsonl
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import psycopg
import redis.asyncio as redis_async
from prometheus_client import start_http_server
from psycopg_pool import AsyncConnectionPool

from apps.order_worker.config import OrderWorkerConfig, get_config
from apps.order_worker.event_sinks import LifecycleEmitter
from apps.order_worker.processor import OrderProcessor
from apps.order_worker.scheduler import JobResult, OrderScheduler
from libs.common.exceptions import ConfigurationError, OrderValidationError
from libs.common.logging import configure_logging
from libs.order_store import OrderEventStore
from libs.orders.models import OrderIntent
from libs.redis_client import OrderEventPublisher
from libs.venues import MockVenueRouter, VenueRouter

logger = logging.getLogger(__name__)

DEMO_TOKEN_PAIRS = (("SOL", "USDC"), ("ETH", "USDC"), ("BONK", "SOL"))


@dataclass
class WorkerResources:
    """Connection handles owned by the worker for its whole lifetime."""

    db_pool: AsyncConnectionPool
    redis_client: redis_async.Redis
    event_store: OrderEventStore
    publisher: OrderEventPublisher


async def create_resources(config: OrderWorkerConfig) -> WorkerResources:
    """Open the Postgres pool and Redis client inside the running event loop."""
    db_pool = AsyncConnectionPool(
        conninfo=config.database_url,
        min_size=config.db_pool_min_size,
        max_size=config.db_pool_max_size,
        open=False,
    )
    await db_pool.open()
    redis_client = cast(redis_async.Redis, redis_async.from_url(config.redis_url))
    logger.info(
        "worker_resources_opened",
        extra={"db_pool_max_size": config.db_pool_max_size},
    )
    return WorkerResources(
        db_pool=db_pool,
        redis_client=redis_client,
        event_store=OrderEventStore(db_pool),
        publisher=OrderEventPublisher(redis_client),
    )


async def close_resources(resources: WorkerResources) -> None:
    """Close the pool, then the publisher's Redis client, even if closing the pool fails."""
    try:
        await resources.db_pool.close()
    finally:
        await resources.publisher.close()
    logger.info("worker_resources_closed")


def build_router(config: OrderWorkerConfig) -> MockVenueRouter:
    return MockVenueRouter(
        base_price=config.mock_base_price,
        fast=config.mock_router_fast,
        failure_rate=config.mock_failure_rate,
    )


def build_scheduler(
    config: OrderWorkerConfig,
    resources: WorkerResources,
    router: VenueRouter | None = None,
) -> OrderScheduler:
    """Wire router -> processor -> scheduler around the shared sinks."""
    emitter = LifecycleEmitter(durable=resources.event_store, transient=resources.publisher)
    processor = OrderProcessor(router=router or build_router(config), emitter=emitter)
    return OrderScheduler(
        processor.process,
        config.scheduler,
        on_exhausted=resources.event_store.mark_permanently_failed,
    )


async def run_orders(
    payloads: Sequence[Mapping[str, Any]],
    config: OrderWorkerConfig,
    router: VenueRouter | None = None,
) -> list[JobResult]:
    """Record and process a batch of order jobs end to end."""
    resources = await create_resources(config)
    try:
        await resources.event_store.ensure_schema()
        scheduler = build_scheduler(config, resources, router)

        accepted: list[Mapping[str, Any]] = []
        rejected: list[JobResult] = []
        for payload in payloads:
            try:
                intent = OrderIntent.from_job_payload(payload)
            except OrderValidationError as e:
                logger.error("order_job_invalid", extra={"error": str(e)})
                rejected.append(JobResult(_payload_order_id(payload), "failed", 0, error=str(e)))
                continue
            try:
                await resources.event_store.create_order(intent)
            except psycopg.Error as e:
                logger.error(
                    "order_create_failed",
                    extra={"order_id": intent.order_id, "error": str(e)},
                )
                rejected.append(JobResult(intent.order_id, "failed", 0, error=str(e)))
                continue
            accepted.append(intent.to_job_payload())

        results = await scheduler.run_all(accepted)
        logger.info(
            "worker_batch_finished",
            extra={
                "orders": len(payloads),
                "completed": sum(1 for r in results if r.state == "completed"),
                "max_active_attempts": scheduler.max_active,
            },
        )
        return rejected + results
    finally:
        await close_resources(resources)


def _payload_order_id(payload: Any) -> str:
    if isinstance(payload, Mapping):
        return str(payload.get("orderId") or "")
    return ""


def load_payloads(path: Path) -> list[dict[str, Any]]:
    """Read job payloads from a JSON array or a JSON-lines file."""
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        items = json.loads(text)
    else:
        items = [json.loads(line) for line in text.splitlines() if line.strip()]

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ConfigurationError(f"{path}: order #{index} is not a JSON object")
    return items


def generate_demo_payloads(count: int) -> list[dict[str, Any]]:
    payloads = []
    for i in range(count):
        token_in, token_out = DEMO_TOKEN_PAIRS[i % len(DEMO_TOKEN_PAIRS)]
        payloads.append(
            {
                "orderId": str(uuid.uuid4()),
                "tokenIn": token_in,
                "tokenOut": token_out,
                "amountIn": float(10 + i),
            }
        )
    return payloads


def summarize(results: Iterable[JobResult]) -> dict[str, Any]:
    results = list(results)
    return {
        "total": len(results),
        "completed": sum(1 for r in results if r.state == "completed"),
        "failed": sum(1 for r in results if r.state == "failed"),
        "orders": [
            {
                "orderId": r.order_id,
                "state": r.state,
                "attempts": r.attempts_made,
                "txHash": r.outcome.tx_hash if r.outcome else None,
                "error": r.error,
            }
            for r in results
        ],
    }


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Process market orders through the order worker")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--orders", type=Path, help="JSON array or JSON-lines file of order jobs")
    source.add_argument("--demo", type=int, metavar="N", help="Generate N demo orders")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    config = get_config()
    configure_logging(service_name=config.service_name, log_level=config.log_level)

    if args.demo is not None and args.demo <= 0:
        logger.error("worker_startup_failed", extra={"reason": "--demo must be > 0"})
        return 2
    payloads = load_payloads(args.orders) if args.orders else generate_demo_payloads(args.demo)

    if config.metrics_port:
        start_http_server(config.metrics_port)
        logger.info("metrics_server_started", extra={"port": config.metrics_port})

    logger.info(
        "worker_started",
        extra={
            "orders": len(payloads),
            "concurrency": config.scheduler.concurrency,
            "max_attempts": config.scheduler.max_attempts,
        },
    )
    results = asyncio.run(run_orders(payloads, config))
    summary = summarize(results)
    print(json.dumps(summary, indent=2))
    return 0 if summary["failed"] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
