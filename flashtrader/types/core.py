"""
Core enums - the fundamental vocabulary of the trading system.
"""

from enum import Enum, auto


class Side(Enum):
    """Order side. Values match the CLOB wire strings."""
    BUY = "BUY"
    SELL = "SELL"


class Outcome(Enum):
    """Side of an Up/Down window market. Values are the canonical side keys."""
    UP = "up"
    DOWN = "down"


class ConnectionState(Enum):
    """Stream transport lifecycle."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    STOPPED = auto()


class FeedEventType(Enum):
    """Market channel event discriminators."""
    BOOK = "book"
    PRICE_CHANGE = "price_change"
    LAST_TRADE_PRICE = "last_trade_price"
