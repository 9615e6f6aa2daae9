"""
Polymarket Market Feed (threaded).

Connects to the public market channel and keeps the OrderBookStore
current. Book events replace the stored snapshot for their token;
price_change and last_trade_price events are passed to listeners only.

Handlers run on the transport thread and must stay fast.
"""

import logging
from typing import Any, Callable, Optional, Union

from .decoder import FeedDecoder
from .websocket_base import StreamTransport
from ..caches import OrderBookStore
from ..errors import DecodeError
from ..types import BookSnapshot, LastTrade, PriceChangeEvent

logger = logging.getLogger(__name__)

# Default WebSocket URL
PM_MARKET_WS_URL = "wss://ws-subscriptions-clob.polymarket.com/ws/market"

BookListener = Callable[[BookSnapshot], None]
PriceChangeListener = Callable[[PriceChangeEvent], None]
TradeListener = Callable[[LastTrade], None]


class MarketFeed(StreamTransport):
    """
    Polymarket market data feed.

    Responsibilities:
    - Subscribe to the Up and Down token books
    - Decode messages with FeedDecoder
    - Publish book snapshots to the OrderBookStore (only writer)
    - Fan out book / price change / trade events to listeners
    """

    def __init__(
        self,
        store: Optional[OrderBookStore] = None,
        ws_url: str = PM_MARKET_WS_URL,
        reconnect_interval: float = 5.0,
        ping_interval: float = 20.0,
        ws_factory: Optional[Callable[[], Any]] = None,
        decoder: Optional[FeedDecoder] = None,
    ):
        super().__init__(
            ws_url=ws_url,
            name="MarketFeed",
            reconnect_interval=reconnect_interval,
            ping_interval=ping_interval,
            ws_factory=ws_factory,
        )
        self._store = store if store is not None else OrderBookStore()
        self._decoder = decoder or FeedDecoder()

        self._book_listeners: list[BookListener] = []
        self._price_change_listeners: list[PriceChangeListener] = []
        self._trade_listeners: list[TradeListener] = []

        # Stats
        self._message_count = 0
        self._book_count = 0
        self._stale_book_count = 0
        self._decode_errors = 0

    @property
    def store(self) -> OrderBookStore:
        return self._store

    @property
    def decoder(self) -> FeedDecoder:
        return self._decoder

    def on_book(self, callback: BookListener) -> BookListener:
        self._book_listeners.append(callback)
        return callback

    def on_price_change(self, callback: PriceChangeListener) -> PriceChangeListener:
        self._price_change_listeners.append(callback)
        return callback

    def on_trade(self, callback: TradeListener) -> TradeListener:
        self._trade_listeners.append(callback)
        return callback

    def _build_subscribe_message(self, asset_ids: list[str]) -> dict:
        return {"assets_ids": list(asset_ids), "type": "MARKET"}

    def _on_subscriptions_replaced(self, asset_ids: list[str]) -> None:
        removed = self._store.retain(asset_ids)
        if removed:
            logger.info(f"MarketFeed: Dropped {removed} books no longer subscribed")

    def _handle_message(self, data: Union[bytes, str]) -> None:
        """Decode and apply one payload. MUST BE FAST."""
        self._message_count += 1

        try:
            events = self._decoder.decode(data)
        except DecodeError as e:
            self._decode_errors += 1
            logger.warning(f"MarketFeed: Dropping message: {e}")
            return

        for event in events:
            if isinstance(event, BookSnapshot):
                self._apply_book(event)
            elif isinstance(event, PriceChangeEvent):
                self._notify(self._price_change_listeners, event)
            elif isinstance(event, LastTrade):
                self._notify(self._trade_listeners, event)

    def _apply_book(self, snapshot: BookSnapshot) -> None:
        # The exchange keeps streaming replaced assets; ignore them.
        # Check and write share the subscription lock with replace + retain.
        with self._sub_lock:
            if snapshot.asset_id not in self._subscribed:
                self._stale_book_count += 1
                return
            self._store.apply_snapshot(snapshot)

        self._book_count += 1
        self._notify(self._book_listeners, snapshot)

    @property
    def stats(self) -> dict:
        """Feed statistics."""
        return {
            "messages": self._message_count,
            "books": self._book_count,
            "stale_books": self._stale_book_count,
            "decode_errors": self._decode_errors,
            "reconnects": self.reconnect_count,
            "decoder": self._decoder.stats,
        }
