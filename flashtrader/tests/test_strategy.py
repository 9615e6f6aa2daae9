"""Tests for the flash crash strategy."""

import threading
import time
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from flashtrader.gateway import OrderGateway, PaperGateway
from flashtrader.session import MarketSession
from flashtrader.strategy import (
    FlashCrashConfig,
    FlashCrashStrategy,
    PriceHistory,
    detect_drop,
)
from flashtrader.types import BookSnapshot, OrderResult, Outcome, PriceLevel, PriceSample, Side


def D(value) -> Decimal:
    return Decimal(str(value))


def samples(*pairs) -> list[PriceSample]:
    """(seconds, price) pairs to samples with ms timestamps."""
    return [PriceSample(timestamp_ms=int(t * 1000), price=D(p)) for t, p in pairs]


class FakeClock:
    def __init__(self, ms: int = 0):
        self.ms = ms

    def __call__(self) -> int:
        return self.ms


class TestPriceHistory:
    """Tests for PriceHistory."""

    def test_capacity(self):
        """Test 101 appends keep the newest 100 in arrival order."""
        history = PriceHistory()
        for i in range(101):
            history.append(i, D(i) / 1000)

        kept = history.samples()
        assert len(kept) == 100
        assert kept[0].timestamp_ms == 1
        assert kept[-1].timestamp_ms == 100
        assert [s.timestamp_ms for s in kept] == list(range(1, 101))

    def test_latest_and_clear(self):
        """Test latest sample and clear."""
        history = PriceHistory(capacity=5)
        assert history.latest is None
        history.append(1, D("0.5"))
        history.append(2, D("0.4"))
        assert history.latest.price == D("0.4")
        history.clear()
        assert len(history) == 0

    def test_samples_is_a_copy(self):
        """Test the returned tuple does not change with later appends."""
        history = PriceHistory()
        history.append(1, D("0.5"))
        snap = history.samples()
        history.append(2, D("0.4"))
        assert len(snap) == 1


class TestDetectDrop:
    """Tests for the drop rule."""

    def test_fires_at_threshold(self):
        """Test 0.60 -> 0.25 within 10s fires at 0.30."""
        signal = detect_drop(Outcome.UP, samples((0, 0.60), (9, 0.25)), 9000, 10_000, D("0.30"))
        assert signal is not None
        assert signal.drop == D("0.35")
        assert signal.reference_price == D("0.60")
        assert signal.current_price == D("0.25")
        assert signal.side == Outcome.UP

    def test_below_threshold(self):
        """Test the same history does not fire at 0.40."""
        assert detect_drop(Outcome.UP, samples((0, 0.60), (9, 0.25)), 9000, 10_000, D("0.40")) is None

    def test_exact_threshold(self):
        """Test a drop equal to the threshold fires."""
        signal = detect_drop(Outcome.DOWN, samples((0, 0.50), (1, 0.20)), 1000, 10_000, D("0.30"))
        assert signal is not None

    def test_reference_too_old(self):
        """Test no decision when every earlier sample is outside the lookback."""
        assert detect_drop(Outcome.UP, samples((0, 0.60), (11, 0.25)), 11_000, 10_000, D("0.30")) is None

    def test_needs_two_samples(self):
        """Test a single sample never fires."""
        assert detect_drop(Outcome.UP, samples((0, 0.60)), 0, 10_000, D("0.30")) is None
        assert detect_drop(Outcome.UP, [], 0, 10_000, D("0.30")) is None

    def test_reference_is_newest_in_window(self):
        """Test the newest earlier sample inside the lookback is the reference."""
        history = samples((0, 0.90), (5, 0.40), (6, 0.25))
        assert detect_drop(Outcome.UP, history, 6000, 10_000, D("0.30")) is None
        signal = detect_drop(Outcome.UP, history, 6000, 10_000, D("0.15"))
        assert signal.reference_price == D("0.40")

    def test_current_excluded_from_reference(self):
        """Test the current sample is never its own reference."""
        assert detect_drop(Outcome.UP, samples((0, 0.25), (1, 0.25)), 1000, 10_000, D("0.0")) is not None
        assert detect_drop(Outcome.UP, samples((0, 0.25), (1, 0.25)), 1000, 10_000, D("0.01")) is None

    def test_rise_never_fires(self):
        """Test price increases never fire."""
        assert detect_drop(Outcome.UP, samples((0, 0.20), (1, 0.60)), 1000, 10_000, D("0.30")) is None


class TestFlashCrashConfig:
    """Tests for FlashCrashConfig."""

    def test_defaults_valid(self):
        """Test default config validates."""
        config = FlashCrashConfig()
        assert config.validate() == []
        assert config.coin == "ETH"
        assert config.size == D("5.0")
        assert config.drop_threshold == D("0.30")
        assert config.lookback_s == 10.0
        assert config.tick_interval_s == 0.1

    def test_invalid(self):
        """Test invalid values are reported."""
        config = FlashCrashConfig(size=D("0"), drop_threshold=D("1.5"), cooldown_s=-1)
        errors = config.validate()
        assert len(errors) == 3


class TestFlashCrashStrategy:
    """Tests for FlashCrashStrategy decisions."""

    @pytest.fixture
    def session(self):
        session = MagicMock(spec=MarketSession)
        session.token_id_for.side_effect = lambda side: {"up": "tok_up", "down": "tok_down"}[Outcome(side).value]
        session.side_for_token.side_effect = {"tok_up": Outcome.UP, "tok_down": Outcome.DOWN}.get
        return session

    @pytest.fixture
    def gateway(self):
        return PaperGateway()

    @pytest.fixture
    def clock(self):
        return FakeClock(0)

    @pytest.fixture
    def strategy(self, session, gateway, clock):
        return FlashCrashStrategy(session, gateway, FlashCrashConfig(cooldown_s=30.0), clock=clock)

    def crash(self, strategy, clock, side=Outcome.UP, start_ms=0, before="0.60", after="0.25"):
        clock.ms = start_ms
        strategy.record_price(side, D(before))
        clock.ms = start_ms + 9000
        strategy.record_price(side, D(after))

    def test_order_on_detection(self, strategy, gateway, clock):
        """Test a crash buys the crashed side at current + 0.02 for notional / price shares."""
        self.crash(strategy, clock)

        strategy._tick()

        assert len(gateway.orders) == 1
        order = gateway.orders[0]
        assert order.token_id == "tok_up"
        assert order.side == Side.BUY
        assert order.price == D("0.27")
        assert order.size == D("5.0") / D("0.25")
        assert order.size == D("20")
        assert strategy.stats["orders_placed"] == 1

    def test_limit_capped(self, strategy, gateway, clock):
        """Test the limit price never exceeds 0.99."""
        strategy._config.drop_threshold = D("0.01")
        self.crash(strategy, clock, before="0.995", after="0.98")

        strategy._tick()

        assert gateway.orders[0].price == D("0.99")

    def test_no_order_without_crash(self, strategy, gateway, clock):
        """Test no order when the drop is below threshold."""
        self.crash(strategy, clock, before="0.50", after="0.45")
        strategy._tick()
        assert gateway.orders == []

    def test_sides_independent(self, strategy, gateway, clock):
        """Test a crash on DOWN buys the DOWN token only."""
        self.crash(strategy, clock, side=Outcome.DOWN)
        strategy.record_price(Outcome.UP, D("0.70"))

        strategy._tick()

        assert [o.token_id for o in gateway.orders] == ["tok_down"]

    def test_no_refire_on_consecutive_ticks(self, strategy, gateway, clock):
        """Test the same crash does not fire again on the next ticks."""
        self.crash(strategy, clock)

        strategy._tick()
        strategy._tick()
        strategy._tick()

        assert len(gateway.orders) == 1
        assert len(strategy.history(Outcome.UP)) == 0

    def test_cooldown(self, strategy, gateway, clock):
        """Test a second crash inside the cooldown is suppressed, and allowed after it."""
        self.crash(strategy, clock, start_ms=0)
        strategy._tick()

        self.crash(strategy, clock, start_ms=10_000)
        strategy._tick()
        assert len(gateway.orders) == 1
        assert strategy.stats["suppressed"] == 1

        self.crash(strategy, clock, start_ms=40_000)
        strategy._tick()
        assert len(gateway.orders) == 2

    def test_zero_cooldown(self, session, gateway, clock):
        """Test cooldown 0 allows back-to-back orders on fresh samples."""
        strategy = FlashCrashStrategy(session, gateway, FlashCrashConfig(cooldown_s=0), clock=clock)
        self.crash(strategy, clock, start_ms=0)
        strategy._tick()
        self.crash(strategy, clock, start_ms=10_000)
        strategy._tick()

        assert len(gateway.orders) == 2

    def test_failed_order_not_retried(self, session, clock):
        """Test a failed result is counted and not retried."""
        gateway = MagicMock(spec=OrderGateway)
        gateway.submit.return_value = OrderResult(success=False, message="rejected")
        strategy = FlashCrashStrategy(session, gateway, FlashCrashConfig(), clock=clock)
        self.crash(strategy, clock)

        strategy._tick()
        strategy._tick()

        gateway.submit.assert_called_once()
        assert strategy.stats["orders_failed"] == 1

    def test_gateway_exception_does_not_kill_tick(self, session, clock):
        """Test an exception inside a tick is logged, not raised."""
        gateway = MagicMock(spec=OrderGateway)
        gateway.submit.side_effect = RuntimeError("gateway down")
        strategy = FlashCrashStrategy(session, gateway, FlashCrashConfig(), clock=clock)
        self.crash(strategy, clock)

        strategy._tick()

        assert strategy.stats["ticks"] == 1

    def test_book_listener_records_mid(self, strategy, clock):
        """Test book updates append the snapshot mid to the matching side."""
        clock.ms = 500
        snapshot = BookSnapshot.build(
            "tok_down",
            bids=[PriceLevel(D("0.40"), D("1"))],
            asks=[PriceLevel(D("0.44"), D("1"))],
        )
        strategy._handle_book_update(snapshot)
        strategy._handle_book_update(BookSnapshot.build("unknown"))

        assert strategy.history(Outcome.DOWN).latest == PriceSample(500, D("0.42"))
        assert len(strategy.history(Outcome.UP)) == 0

    def test_market_change_clears_history(self, strategy, clock):
        """Test a window change clears histories."""
        strategy.record_price(Outcome.UP, D("0.5"))
        strategy._handle_market_change("old", "new")
        assert len(strategy.history(Outcome.UP)) == 0

    def test_rollover_only_when_enabled(self, session, gateway, clock):
        """Test check_rollover is called only with auto_rollover."""
        strategy = FlashCrashStrategy(session, gateway, FlashCrashConfig(), clock=clock)
        strategy._tick()
        session.check_rollover.assert_not_called()

        strategy = FlashCrashStrategy(session, gateway, FlashCrashConfig(auto_rollover=True), clock=clock)
        strategy._tick()
        session.check_rollover.assert_called_once()


class TestFlashCrashStrategyRun:
    """Tests for the run loop."""

    @pytest.fixture
    def session(self):
        session = MagicMock(spec=MarketSession)
        session.start.return_value = True
        session.wait_for_data.return_value = True
        session.side_for_token.return_value = None
        return session

    def test_start_failure(self, session):
        """Test run returns when the session cannot start."""
        session.start.return_value = False
        strategy = FlashCrashStrategy(session, PaperGateway(), FlashCrashConfig())

        strategy.run()

        session.wait_for_data.assert_not_called()
        session.stop.assert_called_once()
        assert strategy.stats["ticks"] == 0

    def test_run_until_stopped(self, session):
        """Test run ticks until stop and always stops the session."""
        strategy = FlashCrashStrategy(session, PaperGateway(), FlashCrashConfig(tick_interval_s=0.01))
        timer = threading.Timer(0.2, strategy.stop)
        timer.start()

        strategy.run()
        timer.join()

        assert strategy.stats["ticks"] > 1
        assert not strategy.is_running
        session.wait_for_data.assert_called_once_with(5.0)
        session.on_book_update.assert_called_once()
        session.stop.assert_called_once()

    def test_tick_cadence(self, session):
        """Test ticks are spaced by tick_interval_s, not run back to back."""
        strategy = FlashCrashStrategy(session, PaperGateway(), FlashCrashConfig(tick_interval_s=0.1))
        tick_times = []
        tick = strategy._tick

        def timed_tick():
            tick_times.append(time.monotonic())
            time.sleep(0.002)
            tick()

        strategy._tick = timed_tick
        timer = threading.Timer(1.0, strategy.stop)
        timer.start()

        strategy.run()
        timer.join()

        assert 8 <= len(tick_times) <= 12
        gaps = [b - a for a, b in zip(tick_times, tick_times[1:])]
        assert min(gaps) >= 0.05

    def test_stop_before_run(self, session):
        """Test stop before run makes run exit right after startup."""
        strategy = FlashCrashStrategy(session, PaperGateway(), FlashCrashConfig())
        strategy.stop()
        strategy.stop()

        strategy.run()

        assert strategy.stats["ticks"] == 0
        session.stop.assert_called_once()
