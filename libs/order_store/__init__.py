"""Durable order event history and order aggregate store (Postgres)."""

from libs.order_store.event_store import PERMANENTLY_FAILED, OrderEventStore

__all__ = ["OrderEventStore", "PERMANENTLY_FAILED"]
