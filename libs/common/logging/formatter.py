"""Structured JSON formatter for order worker logs.

Each record becomes one JSON object per line. Correlation fields
(``order_id``, ``attempt``) are top-level so log pipelines can filter on
them; anything passed through ``extra=`` is nested under ``context``.

Sample line (wrapped):
    {"timestamp": "2025-10-21T10:30:00.123Z", "level": "ERROR",
     "service": "order-exec-engine", "order_id": "7f3c", "attempt": 2,
     "message": "sink_emit_failed",
     "context": {"sink": "durable", "status": "confirmed"},
     "source": {"file": ".../event_sinks.py", "line": 66, "function": "_emit_to"}}
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

# Everything a bare LogRecord carries, plus the fields rendered top-level.
_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
    "order_id",
    "attempt",
    "context",
}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON.

    Args:
        service_name: Value of the "service" field
        include_context: Emit ``extra=`` fields under "context"
    """

    def __init__(self, service_name: str, include_context: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.service_name = service_name
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self._utc_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "order_id": getattr(record, "order_id", None),
            "attempt": getattr(record, "attempt", None),
            "message": record.getMessage(),
        }

        context = self._context(record) if self.include_context else None
        if context:
            entry["context"] = context

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }
        return json.dumps(entry, default=str)

    @staticmethod
    def _utc_timestamp(created: float) -> str:
        """ISO 8601, UTC, millisecond precision, ``Z`` suffix.

        >>> JSONFormatter._utc_timestamp(1697896200.0)
        '2023-10-21T13:50:00.000Z'
        """
        moment = datetime.fromtimestamp(created, tz=UTC)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @staticmethod
    def _context(record: logging.LogRecord) -> dict[str, Any]:
        # An explicit context dict replaces the collected extras.
        explicit = getattr(record, "context", None)
        if isinstance(explicit, dict) and explicit:
            return dict(explicit)
        return {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}
