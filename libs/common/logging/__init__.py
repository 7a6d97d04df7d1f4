"""Structured JSON logging with per-attempt order context.

Usage:
    # At worker startup
    from libs.common.logging import configure_logging
    configure_logging(service_name="order-exec-engine", log_level="INFO")

    # Around one processing attempt
    from libs.common.logging import OrderLogContext
    with OrderLogContext(order_id, attempt):
        logger.info("order_attempt_started")
"""

from libs.common.logging.config import (
    DEFAULT_SERVICE_NAME,
    OrderContextFilter,
    configure_logging,
)
from libs.common.logging.context import (
    OrderLogContext,
    clear_order_context,
    get_attempt,
    get_order_id,
)
from libs.common.logging.formatter import JSONFormatter

__all__ = [
    "DEFAULT_SERVICE_NAME",
    "configure_logging",
    "OrderContextFilter",
    "OrderLogContext",
    "clear_order_context",
    "get_order_id",
    "get_attempt",
    "JSONFormatter",
]
