"""Tests for FeedDecoder."""

from decimal import Decimal

import orjson
import pytest

from flashtrader.errors import DecodeError
from flashtrader.feeds import FeedDecoder
from flashtrader.types import BookSnapshot, LastTrade, PriceChangeEvent


def D(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def decoder():
    return FeedDecoder()


def book_msg(asset_id="tok_up", bids=None, asks=None, **extra):
    msg = {
        "event_type": "book",
        "asset_id": asset_id,
        "market": "0xmarket",
        "timestamp": "1767225600123",
        "hash": "0xhash",
        "bids": bids if bids is not None else [{"price": "0.48", "size": "50"}, {"price": "0.50", "size": "100"}],
        "asks": asks if asks is not None else [{"price": "0.54", "size": "150"}, {"price": "0.52", "size": "200"}],
    }
    msg.update(extra)
    return msg


class TestBookEvents:
    """Tests for book decoding."""

    def test_book(self, decoder):
        """Test a full book decodes into a sorted snapshot."""
        events = decoder.decode(orjson.dumps(book_msg()))
        assert len(events) == 1
        book = events[0]
        assert isinstance(book, BookSnapshot)
        assert book.asset_id == "tok_up"
        assert book.market == "0xmarket"
        assert book.timestamp == 1767225600123
        assert book.hash == "0xhash"
        assert book.best_bid == D("0.50")
        assert book.best_ask == D("0.52")
        assert book.mid_price == D("0.51")
        assert [lvl.price for lvl in book.bids] == [D("0.50"), D("0.48")]

    def test_bad_level_dropped_not_book(self, decoder):
        """Test an unparsable level drops only that level."""
        msg = book_msg(bids=[
            {"price": "0.45", "size": "10"},
            {"price": "abc", "size": "10"},
            {"price": "1.5", "size": "10"},
            {"size": "10"},
            "junk",
        ])
        events = decoder.decode(orjson.dumps(msg))
        assert len(events) == 1
        assert [lvl.price for lvl in events[0].bids] == [D("0.45")]
        assert decoder.stats["dropped_levels"] == 4

    def test_missing_asset_id(self, decoder):
        """Test a book without asset_id is a DecodeError."""
        msg = book_msg()
        del msg["asset_id"]
        with pytest.raises(DecodeError):
            decoder.decode_event(msg)

    def test_levels_not_a_list(self, decoder):
        """Test non-list levels are a DecodeError."""
        with pytest.raises(DecodeError):
            decoder.decode_event(book_msg(bids="0.5"))

    def test_str_payload(self, decoder):
        """Test str payloads are accepted as well as bytes."""
        events = decoder.decode(orjson.dumps(book_msg()).decode())
        assert len(events) == 1


class TestPriceChangeEvents:
    """Tests for price_change decoding."""

    def test_price_change(self, decoder):
        """Test per-asset best bid/ask updates."""
        msg = {
            "event_type": "price_change",
            "market": "0xmarket",
            "timestamp": "1767225600999",
            "price_changes": [
                {"asset_id": "tok_up", "price": "0.5", "size": "200", "side": "BUY",
                 "best_bid": "0.5", "best_ask": "0.52", "hash": "h1"},
                {"asset_id": "tok_down", "price": "0.49", "size": "10", "side": "SELL",
                 "best_bid": "0.47", "best_ask": "0.49"},
            ],
        }
        events = decoder.decode(orjson.dumps(msg))
        assert len(events) == 1
        event = events[0]
        assert isinstance(event, PriceChangeEvent)
        assert event.market == "0xmarket"
        assert len(event.changes) == 2
        assert event.changes[0].best_ask == D("0.52")
        assert event.changes[1].side == "SELL"

    def test_missing_fields_default(self, decoder):
        """Test missing numerics default to price 0, size 0, bid 0, ask 1."""
        msg = {"event_type": "price_change", "market": "m", "price_changes": [{"asset_id": "tok"}]}
        change = decoder.decode_event(msg).changes[0]
        assert change.price == D("0")
        assert change.size == D("0")
        assert change.best_bid == D("0")
        assert change.best_ask == D("1")

    def test_garbage_numeric(self, decoder):
        """Test a present but unparsable numeric is a DecodeError."""
        msg = {"event_type": "price_change", "market": "m",
               "price_changes": [{"asset_id": "tok", "best_bid": "oops"}]}
        with pytest.raises(DecodeError):
            decoder.decode_event(msg)

    def test_changes_not_a_list(self, decoder):
        """Test non-list price_changes is a DecodeError."""
        with pytest.raises(DecodeError):
            decoder.decode_event({"event_type": "price_change", "price_changes": {}})


class TestLastTradeEvents:
    """Tests for last_trade_price decoding."""

    def test_last_trade(self, decoder):
        """Test trade fields."""
        msg = {
            "event_type": "last_trade_price",
            "asset_id": "tok_up",
            "market": "0xmarket",
            "price": "0.456",
            "size": "219.217767",
            "side": "BUY",
            "timestamp": "1750428146322",
            "fee_rate_bps": "0",
        }
        trade = decoder.decode_event(msg)
        assert isinstance(trade, LastTrade)
        assert trade.price == D("0.456")
        assert trade.size == D("219.217767")
        assert trade.timestamp == 1750428146322

    def test_missing_price(self, decoder):
        """Test trade without price is a DecodeError."""
        with pytest.raises(DecodeError):
            decoder.decode_event({"event_type": "last_trade_price", "asset_id": "t", "size": "1"})


class TestDecode:
    """Tests for payload handling."""

    def test_unknown_event_ignored(self, decoder):
        """Test unknown event types are ignored, not errors."""
        events = decoder.decode(orjson.dumps({"event_type": "tick_size_change", "asset_id": "t"}))
        assert events == []
        assert decoder.stats["ignored"] == 1
        assert decoder.stats["errors"] == 0

    def test_invalid_json(self, decoder):
        """Test invalid JSON raises DecodeError."""
        with pytest.raises(DecodeError):
            decoder.decode(b"{not json")

    def test_scalar_payload(self, decoder):
        """Test a JSON scalar raises DecodeError."""
        with pytest.raises(DecodeError):
            decoder.decode(b"42")

    def test_batch_drops_only_bad_items(self, decoder):
        """Test one malformed item in an array does not affect the others."""
        bad = book_msg()
        del bad["asset_id"]
        payload = [book_msg("a"), bad, "junk", book_msg("b")]

        events = decoder.decode(orjson.dumps(payload))
        assert [e.asset_id for e in events] == ["a", "b"]
        assert decoder.stats["decoded"] == 2
        assert decoder.stats["errors"] == 2
