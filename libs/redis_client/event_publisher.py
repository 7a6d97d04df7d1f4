"""
Transient lifecycle event sink over Redis pub/sub.

Publishes each lifecycle payload as JSON to the order's own channel. There
is no persistence: subscribers that are not listening when an event is
published never see it. The durable history lives in the order event store.

Example:
    >>> import redis.asyncio as redis_async
    >>> publisher = OrderEventPublisher(redis_async.from_url("redis://localhost:6379/0"))
    >>> await publisher.emit("7f3c", "routing", {"status": "routing", "attempt": 1})

See Also:
    - libs/order_store/event_store.py for the durable sink
    - apps/order_worker/event_sinks.py for failure isolation between sinks
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import redis.asyncio as redis_async
from redis.exceptions import RedisError

from libs.common.exceptions import SinkError
from libs.redis_client.keys import RedisKeys

logger = logging.getLogger(__name__)


class OrderEventPublisher:
    """
    Broadcasts lifecycle events to live subscribers.

    Attributes:
        redis: Shared ``redis.asyncio`` client owned by the composition root

    Notes:
        - One channel per order: ``order:events:{order_id}``
        - Consumers must key on (order_id, attempt): a retried attempt
          re-publishes its lifecycle from ``routing``
        - Failures raise SinkError; the caller decides what to do with them
    """

    sink_name = "transient"

    def __init__(self, redis_client: redis_async.Redis) -> None:
        self.redis = redis_client

    async def emit(self, order_id: str, status: str, payload: Mapping[str, Any]) -> None:
        """
        Publish one lifecycle payload to the order's channel.

        Args:
            order_id: Order the event belongs to
            status: Lifecycle status (routing, building, ...)
            payload: JSON-shaped lifecycle record

        Raises:
            SinkError: If the payload cannot be serialized or Redis fails
        """
        channel = RedisKeys.order_events(order_id)

        try:
            message = json.dumps(dict(payload), default=str)
        except (TypeError, ValueError) as e:
            logger.error(
                "order_event_serialize_failed",
                extra={"order_id": order_id, "status": status, "error": str(e)},
            )
            raise SinkError(self.sink_name, f"cannot serialize {status} event: {e}") from e

        try:
            num_subscribers = await self.redis.publish(channel, message)
        except RedisError as e:
            logger.error(
                "order_event_publish_failed",
                extra={"order_id": order_id, "status": status, "channel": channel, "error": str(e)},
            )
            raise SinkError(self.sink_name, f"publish to '{channel}' failed: {e}") from e

        logger.debug(
            "order_event_published",
            extra={
                "order_id": order_id,
                "status": status,
                "channel": channel,
                "subscribers": num_subscribers,
            },
        )

    async def close(self) -> None:
        """Close the underlying Redis client."""
        await self.redis.aclose()

    def __repr__(self) -> str:
        return f"OrderEventPublisher(channel_prefix='{RedisKeys.ORDER_EVENTS_PREFIX}')"
