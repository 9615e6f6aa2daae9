"""
Flash crash strategy.

Watches the Up and Down books of the current 15-minute window and buys a
side whose mid price falls by at least drop_threshold within the lookback
window.

Thread model:
    - Book listener (feed thread) appends mid prices to per-side histories
    - Tick loop (caller's thread) evaluates the rule every tick_interval_s
"""

import logging
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from .detector import detect_drop
from .history import DEFAULT_HISTORY_CAPACITY, PriceHistory
from ..gateway import OrderGateway
from ..session import MarketSession
from ..types import BookSnapshot, DropSignal, Outcome, Side, now_ms

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FlashCrashConfig:
    """
    Configuration for the flash crash strategy.

    Attributes:
        coin: Underlying asset (BTC, ETH, SOL, XRP)
        size: Notional per order in USDC; shares = size / price
        drop_threshold: Absolute probability drop that fires a buy
        lookback_s: Maximum age of the reference price
        cooldown_s: Minimum time between orders on the same side (0 = none)
        tick_interval_s: Rule evaluation cadence
        slippage: Added to the current price to form the limit
        max_price: Cap on the limit price
        auto_rollover: Move to the next window when the current one ends
        wait_for_data_s: Startup wait for the first book
        history_capacity: Samples kept per side
    """
    coin: str = "ETH"
    size: Decimal = Decimal("5.0")
    drop_threshold: Decimal = Decimal("0.30")
    lookback_s: float = 10.0
    cooldown_s: float = 30.0
    tick_interval_s: float = 0.1
    slippage: Decimal = Decimal("0.02")
    max_price: Decimal = Decimal("0.99")
    auto_rollover: bool = False
    wait_for_data_s: float = 5.0
    history_capacity: int = DEFAULT_HISTORY_CAPACITY

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty if valid)."""
        errors = []
        if self.size <= 0:
            errors.append("size must be positive")
        if not (0 < self.drop_threshold < 1):
            errors.append("drop_threshold must be in (0, 1)")
        if self.lookback_s <= 0:
            errors.append("lookback_s must be positive")
        if self.cooldown_s < 0:
            errors.append("cooldown_s must be >= 0")
        if self.tick_interval_s <= 0:
            errors.append("tick_interval_s must be positive")
        if not (0 < self.max_price < 1):
            errors.append("max_price must be in (0, 1)")
        if self.history_capacity < 2:
            errors.append("history_capacity must be >= 2")
        return errors


class FlashCrashStrategy:
    """
    Buys the crashed side of an Up/Down market.

    De-duplication: after an order on a side, that side's history is
    cleared (the next detection needs fresh samples) and further orders on
    it are suppressed for cooldown_s seconds.

    Example:
        session = MarketSession("ETH")
        strategy = FlashCrashStrategy(session, PaperGateway(), FlashCrashConfig())
        strategy.run()  # blocks until strategy.stop()
    """

    def __init__(
        self,
        session: MarketSession,
        gateway: OrderGateway,
        config: FlashCrashConfig,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Initialize the strategy.

        Args:
            session: Market session to run (started and stopped by run())
            gateway: Where orders go
            config: Strategy parameters
            clock: Monotonic millisecond clock for samples and cooldowns
        """
        self._session = session
        self._gateway = gateway
        self._config = config
        self._clock = clock

        self._histories = {
            side: PriceHistory(config.history_capacity) for side in Outcome
        }
        self._last_order_ms: dict[Outcome, int] = {}
        self._stop_event = threading.Event()
        self._running = False
        self._listeners_registered = False

        # Stats
        self._ticks = 0
        self._detections = 0
        self._suppressed = 0
        self._orders_placed = 0
        self._orders_failed = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> None:
        """
        Run the strategy until stop() is called.

        Starts the session, waits briefly for books, then ticks. The session
        is always stopped on exit.
        """
        try:
            if not self._session.start():
                logger.error("FlashCrashStrategy: Failed to start market session")
                return

            if not self._session.wait_for_data(self._config.wait_for_data_s):
                logger.warning(
                    f"FlashCrashStrategy: No book data after {self._config.wait_for_data_s:.0f}s, "
                    f"continuing"
                )

            if not self._listeners_registered:
                self._session.on_book_update(self._handle_book_update)
                self._session.on_market_change(self._handle_market_change)
                self._listeners_registered = True

            self._running = True
            logger.info(
                f"FlashCrashStrategy: Running {self._config.coin} "
                f"drop={self._config.drop_threshold} lookback={self._config.lookback_s}s "
                f"size=${self._config.size}"
            )
            self._run_loop()

        except Exception as e:
            logger.error(f"FlashCrashStrategy: Strategy error: {e}")
        finally:
            self._running = False
            self._session.stop()
            logger.info(
                f"FlashCrashStrategy: Stopped. Ticks={self._ticks}, "
                f"Orders={self._orders_placed}, Failed={self._orders_failed}"
            )

    def stop(self) -> None:
        """Ask the tick loop to exit. Safe to call from any thread, repeatedly."""
        self._stop_event.set()

    def _run_loop(self) -> None:
        """Tick at a fixed cadence until stopped."""
        interval = self._config.tick_interval_s
        next_tick = time.monotonic()

        while not self._stop_event.is_set():
            now = time.monotonic()

            # Sleep until next tick
            if now < next_tick:
                if self._stop_event.wait(next_tick - now):
                    break
            elif now - next_tick > interval:
                # Fell behind; skip missed ticks instead of bursting
                next_tick = now

            next_tick += interval
            self._tick()

    def _tick(self) -> None:
        """Run a single strategy tick."""
        self._ticks += 1

        try:
            if self._config.auto_rollover:
                self._session.check_rollover()

            now = self._clock()
            for side in Outcome:
                signal = self.evaluate(side, now)
                if signal is not None:
                    self._on_signal(signal, now)

        except Exception as e:
            logger.error(f"FlashCrashStrategy: Tick error: {e}")

    # ------------------------------------------------------------------
    # Rule
    # ------------------------------------------------------------------

    def evaluate(self, side: Outcome, now: Optional[int] = None) -> Optional[DropSignal]:
        """Apply the drop rule to one side's history."""
        if now is None:
            now = self._clock()
        return detect_drop(
            side,
            self._histories[side].samples(),
            now,
            int(self._config.lookback_s * 1000),
            self._config.drop_threshold,
        )

    def record_price(self, side: Outcome, price: Decimal, ts: Optional[int] = None) -> None:
        """Append a price sample for a side."""
        self._histories[side].append(self._clock() if ts is None else ts, price)

    def _on_signal(self, signal: DropSignal, now: int) -> None:
        self._detections += 1
        side = signal.side

        if self._in_cooldown(side, now):
            self._suppressed += 1
            logger.debug(f"FlashCrashStrategy: {side.name} drop suppressed by cooldown")
            return

        logger.warning(
            f"FLASH CRASH detected on {side.name}: "
            f"{signal.reference_price:.4f} -> {signal.current_price:.4f} "
            f"(drop {signal.drop:.4f})"
        )

        # Consume the crash whatever the order outcome
        self._histories[side].clear()
        self._last_order_ms[side] = now

        token_id = self._session.token_id_for(side)
        if not token_id:
            logger.warning(f"FlashCrashStrategy: No token for {side.name}, order skipped")
            return
        if signal.current_price <= 0:
            logger.warning(f"FlashCrashStrategy: Non-positive price on {side.name}, order skipped")
            return

        size = self._config.size / signal.current_price
        price = min(signal.current_price + self._config.slippage, self._config.max_price)

        result = self._gateway.submit(token_id, price, size, Side.BUY)
        if result.success:
            self._orders_placed += 1
            logger.info(
                f"FlashCrashStrategy: Order placed {side.name} {size:.2f} @ {price:.4f} "
                f"id={result.order_id}"
            )
        else:
            self._orders_failed += 1
            logger.error(f"FlashCrashStrategy: Order failed on {side.name}: {result.message}")

    def _in_cooldown(self, side: Outcome, now: int) -> bool:
        if self._config.cooldown_s <= 0:
            return False
        last = self._last_order_ms.get(side)
        if last is None:
            return False
        return now - last < self._config.cooldown_s * 1000

    # ------------------------------------------------------------------
    # Listeners (feed thread)
    # ------------------------------------------------------------------

    def _handle_book_update(self, snapshot: BookSnapshot) -> None:
        side = self._session.side_for_token(snapshot.asset_id)
        if side is not None:
            self.record_price(side, snapshot.mid_price)

    def _handle_market_change(self, old_slug: str, new_slug: str) -> None:
        # Prices of the old window say nothing about the new one
        for history in self._histories.values():
            history.clear()
        self._last_order_ms.clear()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> FlashCrashConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    def history(self, side: Outcome) -> PriceHistory:
        return self._histories[side]

    @property
    def stats(self) -> dict:
        """Get strategy statistics."""
        return {
            "ticks": self._ticks,
            "detections": self._detections,
            "suppressed": self._suppressed,
            "orders_placed": self._orders_placed,
            "orders_failed": self._orders_failed,
        }
