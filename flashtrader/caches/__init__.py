"""
Cache modules for the trading system.

Contains thread-safe caches for market data:
- OrderBookStore: latest full book snapshot per token
"""

from .orderbook_store import OrderBookStore

__all__ = [
    "OrderBookStore",
]
