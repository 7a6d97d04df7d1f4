"""Pydantic models for order intents, lifecycle events and outcomes.

Python attributes are snake_case; job payloads and lifecycle payloads use the
camelCase wire keys (orderId, tokenIn, txHash, ...) that external consumers
read.

Example:
    >>> intent = OrderIntent.from_job_payload(
    ...     {"orderId": "o-1", "tokenIn": "SOL", "tokenOut": "USDC", "amountIn": "1.5"}
    ... )
    >>> intent.amount_in
    1.5
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from libs.common.exceptions import OrderValidationError

MISSING_ORDER_ID_MESSAGE = "job missing orderId"


class LifecycleStatus(str, Enum):
    """Status values of the per-attempt order lifecycle."""

    ROUTING = "routing"
    BUILDING = "building"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class OrderIntent(BaseModel):
    """Immutable input to one processing attempt (market order only)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    order_id: str = Field(..., alias="orderId", description="Opaque order identifier")
    token_in: str = Field(..., alias="tokenIn", description="Token sold")
    token_out: str = Field(..., alias="tokenOut", description="Token bought")
    amount_in: float = Field(..., alias="amountIn", gt=0, description="Amount of token_in")

    @classmethod
    def from_job_payload(cls, payload: Mapping[str, Any] | None) -> OrderIntent:
        """Build an intent from a raw scheduler job payload.

        Raises:
            OrderValidationError: If orderId is missing/empty or any other
                field is malformed. Never retry-eligible.
        """
        try:
            data = dict(payload or {})
        except (TypeError, ValueError) as e:
            raise OrderValidationError(
                f"job payload must be a mapping, got {type(payload).__name__}"
            ) from e
        if not data.get("orderId"):
            raise OrderValidationError(MISSING_ORDER_ID_MESSAGE)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise OrderValidationError(
                f"invalid job payload for order {data['orderId']}: {e.error_count()} error(s)"
            ) from e

    def to_job_payload(self) -> dict[str, Any]:
        """Render the intent as a scheduler job payload (wire keys)."""
        return self.model_dump(by_alias=True)


class LifecycleEvent(BaseModel):
    """One lifecycle event of one attempt. Never mutated once emitted."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    status: LifecycleStatus
    attempt: int = Field(..., ge=1)
    payload: dict[str, Any] = Field(default_factory=dict)

    def wire_payload(self) -> dict[str, Any]:
        """JSON-shaped record delivered to both sinks.

        Example:
            >>> LifecycleEvent(
            ...     order_id="o-1", status=LifecycleStatus.SUBMITTED, attempt=1,
            ...     payload={"txHash": "0xabc"},
            ... ).wire_payload()
            {'status': 'submitted', 'attempt': 1, 'txHash': '0xabc'}
        """
        return {"status": self.status.value, "attempt": self.attempt, **self.payload}


class OrderOutcome(BaseModel):
    """Terminal success record returned by a successful attempt."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: Literal["filled"] = "filled"
    tx_hash: str = Field(..., alias="txHash")
    executed_price: float = Field(..., alias="executedPrice")
    venue_id: str = Field(..., alias="venueId")
    attempts: int = Field(..., ge=1)
    ok: Literal[True] = True

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
