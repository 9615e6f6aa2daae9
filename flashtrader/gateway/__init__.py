"""
Order gateways.

- OrderGateway: Abstract submit interface
- PolymarketGateway: Live orders via py-clob-client
- PaperGateway: Records orders for dry runs
"""

from .base import OrderGateway
from .paper import PaperGateway
from .polymarket import PolymarketGateway, OrderType, DEFAULT_CLOB_HOST

__all__ = [
    "OrderGateway",
    "PaperGateway",
    "PolymarketGateway",
    "OrderType",
    "DEFAULT_CLOB_HOST",
]
