"""Tests for order intent, lifecycle event and outcome models."""

import pytest
from pydantic import ValidationError

from libs.common.exceptions import OrderEngineError, OrderValidationError
from libs.orders.models import (
    MISSING_ORDER_ID_MESSAGE,
    LifecycleEvent,
    LifecycleStatus,
    OrderIntent,
    OrderOutcome,
)


class TestOrderIntent:
    """Test suite for OrderIntent."""

    def test_from_job_payload(self):
        intent = OrderIntent.from_job_payload(
            {"orderId": "o-1", "tokenIn": "SOL", "tokenOut": "USDC", "amountIn": "1.5"}
        )

        assert intent.order_id == "o-1"
        assert intent.token_in == "SOL"
        assert intent.token_out == "USDC"
        assert intent.amount_in == 1.5

    def test_to_job_payload_uses_wire_keys(self):
        intent = OrderIntent(order_id="o-1", token_in="SOL", token_out="USDC", amount_in=2)

        assert intent.to_job_payload() == {
            "orderId": "o-1",
            "tokenIn": "SOL",
            "tokenOut": "USDC",
            "amountIn": 2.0,
        }

    @pytest.mark.parametrize("payload", [None, {}, {"orderId": None}, {"orderId": ""}])
    def test_missing_order_id(self, payload):
        with pytest.raises(OrderValidationError, match=MISSING_ORDER_ID_MESSAGE):
            OrderIntent.from_job_payload(payload)

    @pytest.mark.parametrize("payload", [["x"], "orderId", 42])
    def test_non_mapping_payload_is_validation_error(self, payload):
        """Payloads that are not mappings are rejected, never a bare TypeError."""
        with pytest.raises(OrderValidationError, match="job payload must be a mapping"):
            OrderIntent.from_job_payload(payload)

    def test_malformed_payload_is_validation_error(self):
        with pytest.raises(OrderValidationError, match="invalid job payload for order o-1") as exc_info:
            OrderIntent.from_job_payload({"orderId": "o-1", "tokenIn": "SOL", "amountIn": -1})

        assert isinstance(exc_info.value, OrderEngineError)
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_intent_is_immutable(self):
        intent = OrderIntent(order_id="o-1", token_in="SOL", token_out="USDC", amount_in=1)

        with pytest.raises(ValidationError):
            intent.amount_in = 5  # type: ignore[misc]


class TestLifecycleEvent:
    """Test suite for LifecycleEvent."""

    def test_wire_payload_merges_status_and_attempt(self):
        event = LifecycleEvent(
            order_id="o-1",
            status=LifecycleStatus.BUILDING,
            attempt=2,
            payload={"chosen": {"venueId": "A", "price": 20.0, "fee": 0.003}},
        )

        assert event.wire_payload() == {
            "status": "building",
            "attempt": 2,
            "chosen": {"venueId": "A", "price": 20.0, "fee": 0.003},
        }

    def test_attempt_starts_at_one(self):
        with pytest.raises(ValidationError):
            LifecycleEvent(order_id="o-1", status=LifecycleStatus.ROUTING, attempt=0)


class TestOrderOutcome:
    """Test suite for OrderOutcome."""

    def test_to_dict(self):
        outcome = OrderOutcome(tx_hash="0xab", executed_price=19.9, venue_id="B", attempts=2)

        assert outcome.to_dict() == {
            "status": "filled",
            "txHash": "0xab",
            "executedPrice": 19.9,
            "venueId": "B",
            "attempts": 2,
            "ok": True,
        }

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            OrderOutcome(tx_hash="0xab", executed_price=19.9, venue_id="B", attempts=0)
