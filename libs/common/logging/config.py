"""Centralized logging configuration for the order worker.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(service_name="order-exec-engine", log_level="INFO")
    >>> logger.info("worker_started", extra={"concurrency": 10})
"""

import logging
import sys

from libs.common.logging.context import get_attempt, get_order_id
from libs.common.logging.formatter import JSONFormatter

DEFAULT_SERVICE_NAME = "order-exec-engine"


class OrderContextFilter(logging.Filter):
    """Logging filter that stamps records with the current order context.

    Values passed explicitly via ``extra={"order_id": ..., "attempt": ...}``
    take precedence over the context variables.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "order_id", None) is None:
            record.order_id = get_order_id()
        if getattr(record, "attempt", None) is None:
            record.attempt = get_attempt()
        return True


def configure_logging(
    service_name: str = DEFAULT_SERVICE_NAME,
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Replaces any existing root handlers with a single stdout handler. Call
    once at process startup.

    Args:
        service_name: Value of the "service" field in every log line
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether to include ``extra=`` fields in output

    Returns:
        Configured root logger

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter(service_name=service_name, include_context=include_context))
    handler.addFilter(OrderContextFilter())

    root_logger.addHandler(handler)
    return root_logger
