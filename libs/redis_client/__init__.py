"""
Redis integration for the order worker.

Components:
    OrderEventPublisher: Transient lifecycle sink over pub/sub
    RedisKeys: Channel/key formats shared by publishers and subscribers

Usage:
    import redis.asyncio as redis_async
    from libs.redis_client import OrderEventPublisher

    publisher = OrderEventPublisher(redis_async.from_url(redis_url))
"""

from .event_publisher import OrderEventPublisher
from .keys import RedisKeys

__all__ = [
    "OrderEventPublisher",
    "RedisKeys",
]
