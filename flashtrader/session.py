"""
Market session.

Composes the window resolver, the market feed and the order book store
into one running session for a single asset:

    resolve window -> subscribe Up/Down pair -> run feed in background

Listeners are called synchronously on the feed thread. They must be fast,
must not block, and must not call back into the session to change it.
"""

import asyncio
import logging
import threading
import time
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from .caches import OrderBookStore
from .clients import GammaClient, MarketWindowResolver, slug_prefix_for
from .feeds import MarketFeed, PM_MARKET_WS_URL
from .types import BookSnapshot, MarketMetadata, Outcome, wall_ms

logger = logging.getLogger(__name__)

BookUpdateListener = Callable[[BookSnapshot], None]
ConnectionListener = Callable[[], None]
MarketChangeListener = Callable[[str, str], None]


def _as_outcome(side: Union[Outcome, str]) -> Outcome:
    if isinstance(side, Outcome):
        return side
    return Outcome(str(side).lower())


class MarketSession:
    """
    One asset's live market data session.

    Owns the active MarketFeed and the OrderBookStore. start() never blocks
    on the feed; only wait_for_data() blocks, and only its caller.
    """

    def __init__(
        self,
        coin: str,
        resolver: Optional[MarketWindowResolver] = None,
        gamma_host: str = GammaClient.DEFAULT_BASE_URL,
        ws_url: str = PM_MARKET_WS_URL,
        reconnect_interval: float = 5.0,
        ping_interval: float = 20.0,
        ws_factory: Optional[Callable[[], Any]] = None,
        rollover_retry_s: float = 5.0,
    ):
        """
        Initialize the session.

        Args:
            coin: Underlying asset (BTC, ETH, SOL, XRP)
            resolver: Window resolver (default: Gamma backed)
            gamma_host: Gamma API base URL for the default resolver
            ws_url: Market channel WebSocket URL
            reconnect_interval: Fixed delay between reconnect attempts
            ping_interval: Keepalive ping interval
            ws_factory: Socket factory passed to the feed
            rollover_retry_s: Minimum delay between rollover resolutions

        Raises:
            ValueError: coin is not supported
        """
        slug_prefix_for(coin)
        self._coin = coin.upper()
        self._resolver = resolver or MarketWindowResolver(GammaClient(gamma_host))
        self._ws_url = ws_url
        self._reconnect_interval = reconnect_interval
        self._ping_interval = ping_interval
        self._ws_factory = ws_factory
        self._rollover_retry_s = rollover_retry_s

        self._store = OrderBookStore()
        self._feed: Optional[MarketFeed] = None
        self._market: Optional[MarketMetadata] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._next_rollover_check = 0.0

        self._book_listeners: list[BookUpdateListener] = []
        self._connect_listeners: list[ConnectionListener] = []
        self._disconnect_listeners: list[ConnectionListener] = []
        self._market_change_listeners: list[MarketChangeListener] = []

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_book_update(self, listener: BookUpdateListener) -> BookUpdateListener:
        self._book_listeners.append(listener)
        return listener

    def on_connect(self, listener: ConnectionListener) -> ConnectionListener:
        self._connect_listeners.append(listener)
        return listener

    def on_disconnect(self, listener: ConnectionListener) -> ConnectionListener:
        self._disconnect_listeners.append(listener)
        return listener

    def on_market_change(self, listener: MarketChangeListener) -> MarketChangeListener:
        self._market_change_listeners.append(listener)
        return listener

    def _notify(self, listeners: list[Callable], *args) -> None:
        """Call every listener; one failing listener never blocks the rest."""
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"MarketSession: Listener {getattr(listener, '__name__', listener)} failed: {e}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Resolve the current window and start streaming its books.

        Returns:
            True if the feed was started, False if no window was found
            or stop() was called while resolving
        """
        with self._lock:
            if self._feed is not None:
                logger.warning("MarketSession: Already running")
                return True
            self._stop_event.clear()

        # Resolved outside the lock so stop() is never held up by HTTP probes
        metadata = self._resolve()
        if metadata is None:
            logger.error(f"MarketSession: Could not find an active {self._coin} 15m market")
            return False

        token_ids = self._pair(metadata)
        if not token_ids:
            logger.error(f"MarketSession: Market {metadata.slug} has no token ids")
            return False

        with self._lock:
            if self._feed is not None:
                logger.warning("MarketSession: Already running")
                return True
            if self._stop_event.is_set():
                logger.info("MarketSession: Stopped during market resolution")
                return False

            self._market = metadata
            self._store.clear()

            feed = self._create_feed()
            feed.subscribe(token_ids, replace=True)
            feed.start()
            self._feed = feed

        logger.info(f"MarketSession: Started {metadata.slug}")
        return True

    def stop(self) -> None:
        """Stop the feed and release it. Safe to call repeatedly."""
        self._stop_event.set()
        with self._lock:
            feed, self._feed = self._feed, None
        if feed is None:
            return
        feed.stop()
        logger.info("MarketSession: Stopped")

    def wait_for_data(self, timeout: float = 5.0, poll_interval: float = 0.1) -> bool:
        """
        Block until at least one side has a book, or until timeout.

        Returns:
            True if data arrived in time
        """
        deadline = time.monotonic() + timeout
        while True:
            if self._has_pair_data():
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            if self._stop_event.wait(timeout=min(poll_interval, remaining)):
                return self._has_pair_data()

    def check_rollover(self, now_wall_ms: Optional[int] = None) -> bool:
        """
        Move to the next window once the current one has ended.

        Re-resolves the window and re-subscribes the new pair with replace
        on the same feed. Resolution is attempted at most once every
        rollover_retry_s seconds while the old window stays expired.

        Returns:
            True if the session switched to a new window
        """
        market = self._market
        feed = self._feed
        if market is None or feed is None:
            return False
        if now_wall_ms is None:
            now_wall_ms = wall_ms()
        if not market.is_expired(now_wall_ms):
            return False

        now = time.monotonic()
        if now < self._next_rollover_check:
            return False
        self._next_rollover_check = now + self._rollover_retry_s

        logger.info(f"MarketSession: Window {market.slug} ended, resolving next window")
        metadata = self._resolve()
        if metadata is None or metadata.slug == market.slug:
            return False

        token_ids = self._pair(metadata)
        if not token_ids:
            logger.error(f"MarketSession: Market {metadata.slug} has no token ids")
            return False

        self._market = metadata
        feed.subscribe(token_ids, replace=True)
        logger.info(f"MarketSession: Rolled over {market.slug} -> {metadata.slug}")
        self._notify(self._market_change_listeners, market.slug, metadata.slug)
        return True

    # ------------------------------------------------------------------
    # Book access
    # ------------------------------------------------------------------

    def current_orderbook(self, side: Union[Outcome, str]) -> Optional[BookSnapshot]:
        """Latest book for a side, or None."""
        token_id = self.token_id_for(side)
        if token_id is None:
            return None
        return self._store.get(token_id)

    def token_id_for(self, side: Union[Outcome, str]) -> Optional[str]:
        market = self._market
        if market is None:
            return None
        return market.token_for(_as_outcome(side))

    def side_for_token(self, token_id: str) -> Optional[Outcome]:
        """Which side a token belongs to in the current window."""
        market = self._market
        if market is None:
            return None
        for side in Outcome:
            if market.token_for(side) == token_id:
                return side
        return None

    def mid_price(self, side: Union[Outcome, str]) -> Decimal:
        return self._store.mid(self.token_id_for(side) or "")

    def best_bid(self, side: Union[Outcome, str]) -> Decimal:
        return self._store.best_bid(self.token_id_for(side) or "")

    def best_ask(self, side: Union[Outcome, str]) -> Decimal:
        return self._store.best_ask(self.token_id_for(side) or "")

    def spread(self, side: Union[Outcome, str]) -> Decimal:
        return self._store.spread(self.token_id_for(side) or "")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def coin(self) -> str:
        return self._coin

    @property
    def current_market(self) -> Optional[MarketMetadata]:
        return self._market

    @property
    def token_ids(self) -> dict[str, str]:
        """Token id per side for the current window."""
        market = self._market
        return dict(market.token_ids) if market else {}

    @property
    def store(self) -> OrderBookStore:
        return self._store

    @property
    def feed(self) -> Optional[MarketFeed]:
        return self._feed

    @property
    def is_running(self) -> bool:
        return self._feed is not None

    @property
    def is_connected(self) -> bool:
        feed = self._feed
        return feed is not None and feed.connected

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self) -> Optional[MarketMetadata]:
        """Drive the async resolver from this thread."""

        async def resolve() -> Optional[MarketMetadata]:
            try:
                return await self._resolver.resolve_current_window(self._coin)
            finally:
                await self._resolver.close()

        return asyncio.run(resolve())

    def _pair(self, metadata: MarketMetadata) -> list[str]:
        return [t for t in (metadata.up_token_id, metadata.down_token_id) if t]

    def _has_pair_data(self) -> bool:
        return any(t in self._store for t in self.token_ids.values())

    def _create_feed(self) -> MarketFeed:
        feed = MarketFeed(
            store=self._store,
            ws_url=self._ws_url,
            reconnect_interval=self._reconnect_interval,
            ping_interval=self._ping_interval,
            ws_factory=self._ws_factory,
        )
        feed.on_book(self._handle_book)
        feed.on_connect(self._handle_connect)
        feed.on_disconnect(self._handle_disconnect)
        return feed

    def _handle_book(self, snapshot: BookSnapshot) -> None:
        self._notify(self._book_listeners, snapshot)

    def _handle_connect(self) -> None:
        self._notify(self._connect_listeners)

    def _handle_disconnect(self) -> None:
        self._notify(self._disconnect_listeners)
