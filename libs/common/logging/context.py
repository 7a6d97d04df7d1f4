"""Order context propagation for structured logging.

Every processing attempt runs with the order ID and attempt number bound in
context variables, so any log line emitted while the attempt is in progress
(including from venue adapters and sinks) can be correlated with it.

Context variables are task-local under asyncio: concurrent attempts running
in separate tasks never see each other's values.

Example:
    >>> from libs.common.logging.context import OrderLogContext, get_order_id
    >>> with OrderLogContext("order-123", attempt=2):
    ...     get_order_id()
    'order-123'
    >>> get_order_id() is None
    True
"""

import contextvars
from types import TracebackType

_order_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "order_id", default=None
)
_attempt_var: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "attempt", default=None
)


def get_order_id() -> str | None:
    """Return the order ID bound to the current context, if any."""
    return _order_id_var.get()


def get_attempt() -> int | None:
    """Return the attempt number bound to the current context, if any."""
    return _attempt_var.get()


def clear_order_context() -> None:
    """Remove order ID and attempt number from the current context."""
    _order_id_var.set(None)
    _attempt_var.set(None)


class OrderLogContext:
    """Context manager scoping order/attempt context to one block.

    The previous values are restored on exit, including when the block
    raises.

    Args:
        order_id: Order being processed
        attempt: 1-based attempt number

    Example:
        >>> with OrderLogContext("order-123", attempt=1):
        ...     logger.info("order_attempt_started")
    """

    def __init__(self, order_id: str, attempt: int | None = None) -> None:
        self.order_id = order_id
        self.attempt = attempt
        self._order_token: contextvars.Token[str | None] | None = None
        self._attempt_token: contextvars.Token[int | None] | None = None

    def __enter__(self) -> "OrderLogContext":
        if not self.order_id:
            raise ValueError("Order ID cannot be empty")
        self._order_token = _order_id_var.set(self.order_id)
        self._attempt_token = _attempt_var.set(self.attempt)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._attempt_token is not None:
            _attempt_var.reset(self._attempt_token)
        if self._order_token is not None:
            _order_id_var.reset(self._order_token)
