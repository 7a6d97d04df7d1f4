"""Common utilities and exceptions."""

from libs.common.exceptions import (
    ConfigurationError,
    ExecutionError,
    OrderEngineError,
    OrderValidationError,
    QuoteUnavailableError,
    SinkError,
    TradeExecutionError,
)

__all__ = [
    "OrderEngineError",
    "OrderValidationError",
    "ExecutionError",
    "QuoteUnavailableError",
    "TradeExecutionError",
    "SinkError",
    "ConfigurationError",
]
