"""
Exception hierarchy for the order execution engine.

Errors are split by what the caller should do with them:

- OrderValidationError: the input can never succeed, do not retry
- ExecutionError: a venue call failed, the scheduler may retry the attempt
- SinkError: an event sink failed, recovered locally and never propagated
"""


class OrderEngineError(Exception):
    """
    Base exception for all order execution engine errors.

    Example:
        >>> try:
        ...     await processor.process(job, previous_attempts_made=0)
        ... except OrderEngineError as e:
        ...     logger.error(f"Order engine error: {e}")
    """

    pass


class OrderValidationError(OrderEngineError):
    """
    Raised when a job payload is missing required fields or is malformed.

    Raised before any lifecycle event is emitted. Retrying cannot fix the
    input, so the reference scheduler fails the order immediately.

    Example:
        >>> if not payload.get("orderId"):
        ...     raise OrderValidationError("job missing orderId")
    """

    pass


class ExecutionError(OrderEngineError):
    """
    Raised when quote retrieval or trade execution fails.

    Retry-eligible: the scheduler's backoff and attempt ceiling decide
    whether the order gets another attempt.
    """

    pass


class QuoteUnavailableError(ExecutionError):
    """Raised when a venue cannot produce a quote (timeout, network, outage)."""

    pass


class TradeExecutionError(ExecutionError):
    """Raised when a venue fails to execute the trade."""

    pass


class SinkError(OrderEngineError):
    """
    Raised by an event sink when it cannot record or broadcast an event.

    The emission wrapper always catches this; it never changes an
    attempt's outcome.

    Attributes:
        sink: Name of the failing sink ("durable" or "transient")
    """

    def __init__(self, sink: str, message: str) -> None:
        self.sink = sink
        super().__init__(f"{sink} sink: {message}")


class ConfigurationError(OrderEngineError):
    """Raised when worker configuration is invalid or incomplete."""

    pass
