"""Dual-sink lifecycle emission with per-sink failure isolation.

Every lifecycle event goes to two independent sinks: the durable store
(queryable history) and the transient broadcaster (live subscribers). The
two writes are not atomic and may diverge; a failing sink is logged and
counted, and never blocks the other sink or alters the attempt.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from apps.order_worker.metrics import order_lifecycle_events_total, order_sink_failures_total
from libs.orders.models import LifecycleEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Port accepting one lifecycle event. Raises on failure."""

    sink_name: str

    async def emit(self, order_id: str, status: str, payload: Mapping[str, Any]) -> None: ...


@dataclass(frozen=True, slots=True)
class EmissionReport:
    """Per-sink result of emitting one lifecycle event."""

    durable_ok: bool
    transient_ok: bool

    @property
    def all_ok(self) -> bool:
        return self.durable_ok and self.transient_ok


class LifecycleEmitter:
    """Emits lifecycle events to the durable and transient sinks.

    Durable is written first, then transient. ``emit`` never raises.
    """

    def __init__(self, durable: EventSink, transient: EventSink) -> None:
        self.durable = durable
        self.transient = transient

    async def emit(self, event: LifecycleEvent) -> EmissionReport:
        payload = event.wire_payload()
        durable_ok = await self._emit_to(self.durable, event, payload)
        transient_ok = await self._emit_to(self.transient, event, payload)
        order_lifecycle_events_total.labels(status=event.status.value).inc()
        return EmissionReport(durable_ok=durable_ok, transient_ok=transient_ok)

    async def _emit_to(
        self, sink: EventSink, event: LifecycleEvent, payload: dict[str, Any]
    ) -> bool:
        sink_name = getattr(sink, "sink_name", type(sink).__name__)
        try:
            await sink.emit(event.order_id, event.status.value, payload)
        except Exception as exc:  # noqa: BLE001 - sink failures never escape
            logger.error(
                "sink_emit_failed",
                extra={
                    "order_id": event.order_id,
                    "attempt": event.attempt,
                    "status": event.status.value,
                    "sink": sink_name,
                    "error": str(exc) or type(exc).__name__,
                },
            )
            order_sink_failures_total.labels(sink=sink_name, status=event.status.value).inc()
            return False
        return True
