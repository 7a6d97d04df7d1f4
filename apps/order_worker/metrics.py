"""Prometheus metrics definitions for the Order Worker.

Usage:
    from apps.order_worker.metrics import order_attempts_total

    order_attempts_total.labels(outcome="filled").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ============================================================================
# Attempt Metrics
# ============================================================================

order_attempts_total = Counter(
    "order_worker_attempts_total",
    "Total processing attempts by outcome",
    ["outcome"],  # outcome: filled, failed, rejected
)

order_attempt_duration_seconds = Histogram(
    "order_worker_attempt_duration_seconds",
    "Wall time of one processing attempt",
)

order_active_attempts = Gauge(
    "order_worker_active_attempts",
    "Attempts currently executing",
)

orders_exhausted_total = Counter(
    "order_worker_orders_exhausted_total",
    "Orders that failed on every allowed attempt",
)

# ============================================================================
# Lifecycle & Routing Metrics
# ============================================================================

order_lifecycle_events_total = Counter(
    "order_worker_lifecycle_events_total",
    "Lifecycle events emitted",
    ["status"],
)

order_sink_failures_total = Counter(
    "order_worker_sink_failures_total",
    "Lifecycle event emissions that failed, by sink",
    ["sink", "status"],  # sink: durable, transient
)

order_venue_selected_total = Counter(
    "order_worker_venue_selected_total",
    "Times each venue offered the lowest effective cost",
    ["venue"],
)
