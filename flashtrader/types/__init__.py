"""
Trading system types.

This module re-exports all types. You can import directly from here or
from the specific submodules.

Example:
    from flashtrader.types import BookSnapshot, Outcome, now_ms

    # More explicit
    from flashtrader.types.market_data import BookSnapshot
    from flashtrader.types.utils import now_ms
"""

# Core enums
from .core import (
    Side,
    Outcome,
    ConnectionState,
    FeedEventType,
)

# Utility functions
from .utils import (
    now_ms,
    wall_ms,
    to_decimal,
    to_int,
)

# Market data
from .market_data import (
    PRICE_FLOOR,
    PRICE_CEILING,
    UNDEFINED_MID,
    PriceLevel,
    BookSnapshot,
    PriceChange,
    PriceChangeEvent,
    LastTrade,
    FeedEvent,
    PriceSample,
    compute_mid,
)

# Market discovery
from .config import MarketMetadata

# Gateway
from .gateway import (
    OrderRequest,
    OrderResult,
)

# Strategy
from .strategy import DropSignal

__all__ = [
    # Core enums
    "Side",
    "Outcome",
    "ConnectionState",
    "FeedEventType",
    # Utility functions
    "now_ms",
    "wall_ms",
    "to_decimal",
    "to_int",
    # Market data
    "PRICE_FLOOR",
    "PRICE_CEILING",
    "UNDEFINED_MID",
    "PriceLevel",
    "BookSnapshot",
    "PriceChange",
    "PriceChangeEvent",
    "LastTrade",
    "FeedEvent",
    "PriceSample",
    "compute_mid",
    # Market discovery
    "MarketMetadata",
    # Gateway
    "OrderRequest",
    "OrderResult",
    # Strategy
    "DropSignal",
]
