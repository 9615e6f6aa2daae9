"""
Polymarket API clients for market discovery.

This module contains:
- GammaClient: Market metadata lookup via Gamma API
- MarketWindowResolver: 15-minute Up/Down window discovery
"""

from .gamma_client import GammaClient, GammaAPIError
from .market_finder import (
    ASSET_SLUG_PREFIXES,
    WINDOW_SECONDS,
    MarketWindowResolver,
    build_window_slug,
    map_outcomes,
    parse_end_time_ms,
    parse_market_metadata,
    parse_prices,
    parse_token_ids,
    slug_prefix_for,
    window_start,
)

__all__ = [
    "GammaClient",
    "GammaAPIError",
    "ASSET_SLUG_PREFIXES",
    "WINDOW_SECONDS",
    "MarketWindowResolver",
    "build_window_slug",
    "map_outcomes",
    "parse_end_time_ms",
    "parse_market_metadata",
    "parse_prices",
    "parse_token_ids",
    "slug_prefix_for",
    "window_start",
]
