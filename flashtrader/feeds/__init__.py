"""
Data feeds for the trading system.

Contains the WebSocket transport and market channel feed:
- StreamTransport: Reconnecting threaded WebSocket base
- FeedDecoder: Market channel message decoder
- MarketFeed: Polymarket order book feed
"""

from .websocket_base import StreamTransport
from .decoder import FeedDecoder
from .market_feed import MarketFeed, PM_MARKET_WS_URL

__all__ = [
    "StreamTransport",
    "FeedDecoder",
    "MarketFeed",
    "PM_MARKET_WS_URL",
]
