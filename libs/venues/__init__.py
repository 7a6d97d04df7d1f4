"""
Liquidity venue abstraction: quotes, trade execution, and venue selection.

Components:
    VenueRouter: Protocol every venue adapter implements
    MockVenueRouter: Simulated venues for local runs and tests
    select_best_quote: Lowest effective cost, first venue wins ties
"""

from libs.venues.mock_router import MockVenueRouter, VenueProfile
from libs.venues.models import DEFAULT_VENUES, ExecutionResult, Quote, VenueId
from libs.venues.router import VenueRouter, select_best_quote

__all__ = [
    "DEFAULT_VENUES",
    "ExecutionResult",
    "MockVenueRouter",
    "Quote",
    "VenueId",
    "VenueProfile",
    "VenueRouter",
    "select_best_quote",
]
