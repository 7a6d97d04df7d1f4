"""
Centralized Redis key and channel formats.

Usage:
    from libs.redis_client.keys import RedisKeys

    channel = RedisKeys.order_events(order_id="7f3c")
    # Returns: "order:events:7f3c"

Convention: entity_type:subtype:identifier
"""


class RedisKeys:
    """
    Centralized Redis key/channel definitions.

    All Redis keys and pub/sub channels used by the order worker are
    generated here so publishers and subscribers never drift apart.
    """

    ORDER_EVENTS_PREFIX = "order:events:"

    @staticmethod
    def order_events(order_id: str) -> str:
        """
        Pub/sub channel carrying the lifecycle events of one order.

        Format: "order:events:{order_id}"

        Examples:
            >>> RedisKeys.order_events("7f3c")
            'order:events:7f3c'

        Used By:
            - Order worker (publishes routing/building/submitted/confirmed/failed)
            - Socket gateway (subscribes per order and forwards to clients)
        """
        if not order_id:
            raise ValueError("order_id cannot be empty")
        return f"{RedisKeys.ORDER_EVENTS_PREFIX}{order_id}"
