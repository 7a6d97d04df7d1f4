"""Tests for best-venue selection by effective cost."""

import pytest
from pydantic import ValidationError

from libs.venues.models import Quote, VenueId
from libs.venues.router import select_best_quote


def _quote(venue: VenueId, price: float, fee: float) -> Quote:
    return Quote(price=price, fee=fee, venue_id=venue)


class TestSelectBestQuote:
    """Test suite for select_best_quote."""

    def test_lower_effective_cost_wins(self):
        """A=100/0.003 costs 100.3, B=98/0.002 costs 98.196, so B wins."""
        quotes = [_quote(VenueId.A, 100.0, 0.003), _quote(VenueId.B, 98.0, 0.002)]

        assert select_best_quote(quotes).venue_id == VenueId.B

    def test_fee_can_outweigh_price(self):
        """A cheaper price with a higher fee can lose."""
        quotes = [_quote(VenueId.A, 100.0, 0.0), _quote(VenueId.B, 99.9, 0.002)]

        assert select_best_quote(quotes).venue_id == VenueId.A

    def test_exact_tie_selects_first(self):
        """Venue A wins ties when quotes are in canonical order."""
        quotes = [_quote(VenueId.A, 50.0, 0.002), _quote(VenueId.B, 50.0, 0.002)]

        assert select_best_quote(quotes).venue_id == VenueId.A

    def test_single_quote(self):
        quote = _quote(VenueId.B, 10.0, 0.001)

        assert select_best_quote([quote]) is quote

    def test_empty_quotes_rejected(self):
        with pytest.raises(ValueError, match="zero quotes"):
            select_best_quote([])


class TestQuoteModel:
    """Test suite for Quote validation."""

    def test_effective_cost(self):
        assert _quote(VenueId.A, 100.0, 0.003).effective_cost == pytest.approx(100.3)

    @pytest.mark.parametrize(("price", "fee"), [(0.0, 0.001), (-1.0, 0.001), (10.0, -0.1), (10.0, 1.0)])
    def test_invalid_quote_rejected(self, price, fee):
        with pytest.raises(ValidationError):
            _quote(VenueId.A, price, fee)
