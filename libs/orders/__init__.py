"""Order data model shared by the worker, venues and sinks."""

from libs.orders.models import (
    MISSING_ORDER_ID_MESSAGE,
    LifecycleEvent,
    LifecycleStatus,
    OrderIntent,
    OrderOutcome,
)

__all__ = [
    "MISSING_ORDER_ID_MESSAGE",
    "LifecycleEvent",
    "LifecycleStatus",
    "OrderIntent",
    "OrderOutcome",
]
