"""Quote and execution models for liquidity venues."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VenueId(str, Enum):
    """Liquidity venues. Declaration order is the canonical query order."""

    A = "A"
    B = "B"


# Canonical query order; also the tie-break order for venue selection.
DEFAULT_VENUES: tuple[VenueId, ...] = (VenueId.A, VenueId.B)


class Quote(BaseModel):
    """Price offered by one venue for one attempt. Never persisted standalone."""

    model_config = ConfigDict(frozen=True)

    price: float = Field(..., gt=0, description="Quoted price")
    fee: float = Field(..., ge=0, lt=1, description="Fee rate in [0, 1)")
    venue_id: VenueId

    @property
    def effective_cost(self) -> float:
        """Price including fees: ``price * (1 + fee)``."""
        return self.price * (1 + self.fee)


class ExecutionResult(BaseModel):
    """Result of a successful trade execution call."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str = Field(..., min_length=1)
    executed_price: float = Field(..., gt=0)
    venue_id: VenueId
