"""Postgres-backed durable sink for order lifecycle events.

Two tables:

- ``order_events``: append-only, one row per emitted lifecycle event
  ``{order_id, event_type, meta, created_at}``. Source of truth for history.
- ``orders``: aggregate record per order carrying the current status, retry
  count, last error and an append-only ``status_history`` timeline.

Each event insert and the matching aggregate update share one transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from libs.common.exceptions import SinkError
from libs.orders.models import OrderIntent

logger = logging.getLogger(__name__)

PERMANENTLY_FAILED = "permanently_failed"

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL DEFAULT 'market',
        token_in TEXT NOT NULL,
        token_out TEXT NOT NULL,
        amount_in NUMERIC NOT NULL,
        status TEXT NOT NULL DEFAULT 'queued',
        retry_count INTEGER NOT NULL DEFAULT 0,
        last_error TEXT,
        status_history JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_events (
        id BIGSERIAL PRIMARY KEY,
        order_id TEXT NOT NULL,
        event_type TEXT NOT NULL,
        meta JSONB,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_order_events_order_id_created_at
        ON order_events (order_id, created_at, id)
    """,
)


class OrderEventStore:
    """Durable lifecycle sink and order aggregate store."""

    sink_name = "durable"

    def __init__(self, db_pool: AsyncConnectionPool) -> None:
        self.db_pool = db_pool

    async def ensure_schema(self) -> None:
        """Create the orders/order_events tables if they do not exist."""
        async with self.db_pool.connection() as conn:
            async with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    await cur.execute(statement)
            await conn.commit()
        logger.info("order_store_schema_ready")

    async def create_order(self, intent: OrderIntent, order_type: str = "market") -> None:
        """Insert the aggregate record in ``queued`` status (no-op if it exists)."""
        async with self.db_pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO orders (id, type, token_in, token_out, amount_in, status)
                    VALUES (%s, %s, %s, %s, %s, 'queued')
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (
                        intent.order_id,
                        order_type,
                        intent.token_in,
                        intent.token_out,
                        intent.amount_in,
                    ),
                )
            await conn.commit()

    async def emit(self, order_id: str, status: str, payload: Mapping[str, Any]) -> None:
        """Record one lifecycle event and fold it into the order aggregate.

        Raises:
            SinkError: If the database write fails
        """
        now = datetime.now(UTC)
        attempt = int(payload.get("attempt") or 1)
        history_entry = [{"status": status, "attempt": attempt, "at": now.isoformat()}]

        try:
            async with self.db_pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO order_events (order_id, event_type, meta, created_at)
                        VALUES (%s, %s, %s, %s)
                        """,
                        (order_id, status, Jsonb(dict(payload)), now),
                    )
                    await cur.execute(
                        """
                        UPDATE orders
                        SET status = %(status)s,
                            retry_count = GREATEST(retry_count, %(retries)s),
                            last_error = CASE WHEN %(status)s = 'failed'
                                              THEN %(error)s ELSE last_error END,
                            status_history = status_history || %(entry)s,
                            updated_at = %(now)s
                        WHERE id = %(order_id)s
                        """,
                        {
                            "status": status,
                            "retries": attempt - 1,
                            "error": payload.get("error"),
                            "entry": Jsonb(history_entry),
                            "now": now,
                            "order_id": order_id,
                        },
                    )
                await conn.commit()
        except psycopg.Error as e:
            logger.error(
                "order_event_persist_failed",
                extra={"order_id": order_id, "status": status, "error": str(e)},
            )
            raise SinkError(self.sink_name, f"cannot persist {status} event: {e}") from e

    async def mark_permanently_failed(self, order_id: str, error: str, attempts: int) -> None:
        """Mark an order as permanently failed once its attempts are exhausted."""
        now = datetime.now(UTC)
        async with self.db_pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE orders
                    SET status = %s,
                        retry_count = %s,
                        last_error = %s,
                        status_history = status_history || %s,
                        updated_at = %s
                    WHERE id = %s
                    """,
                    (
                        PERMANENTLY_FAILED,
                        attempts,
                        error,
                        Jsonb(
                            [{"status": PERMANENTLY_FAILED, "attempt": attempts, "at": now.isoformat()}]
                        ),
                        now,
                        order_id,
                    ),
                )
            await conn.commit()
        logger.error(
            "order_permanently_failed",
            extra={"order_id": order_id, "attempts": attempts, "error": error},
        )

    async def get_order(self, order_id: str) -> dict[str, Any] | None:
        """Return the aggregate record for ``order_id``, or None."""
        async with self.db_pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """
                    SELECT id, type, token_in, token_out, amount_in, status,
                           retry_count, last_error, status_history, created_at, updated_at
                    FROM orders
                    WHERE id = %s
                    """,
                    (order_id,),
                )
                row: dict[str, Any] | None = await cur.fetchone()
        return row

    async def get_order_events(self, order_id: str) -> list[dict[str, Any]]:
        """Return the event history of ``order_id`` in emission order."""
        async with self.db_pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """
                    SELECT order_id, event_type, meta, created_at
                    FROM order_events
                    WHERE order_id = %s
                    ORDER BY created_at ASC, id ASC
                    """,
                    (order_id,),
                )
                rows: Iterable[dict[str, Any]] = await cur.fetchall()
        return list(rows)


__all__ = ["OrderEventStore", "PERMANENTLY_FAILED", "SCHEMA_STATEMENTS"]
