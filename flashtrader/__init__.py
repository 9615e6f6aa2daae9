"""
Flash crash trader for Polymarket 15-minute Up/Down markets.

Architecture:
- MarketFeed (thread): market channel WebSocket -> OrderBookStore
- MarketSession: window resolution, subscriptions, listener fan-out
- FlashCrashStrategy (main thread): price histories, drop rule, orders
- OrderGateway: py-clob-client (live) or paper (dry run)
"""

__version__ = "0.1.0"
