"""
Market data types.

Types for representing Polymarket market channel data. All prices are
probabilities in (0, 1) held as Decimal; sizes are shares.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from .core import Side

# Natural bounds of a probability-token book
PRICE_FLOOR = Decimal("0")
PRICE_CEILING = Decimal("1")
UNDEFINED_MID = Decimal("0.5")


@dataclass(frozen=True, slots=True)
class PriceLevel:
    """A single resting price level."""
    price: Decimal
    size: Decimal

    @property
    def is_valid(self) -> bool:
        """Price strictly inside (0, 1) and a non-negative size."""
        return PRICE_FLOOR < self.price < PRICE_CEILING and self.size >= 0


def _collapse_levels(levels: Iterable[PriceLevel]) -> dict[Decimal, Decimal]:
    """Later level for a price replaces the earlier one; size 0 removes it."""
    book: dict[Decimal, Decimal] = {}
    for level in levels:
        if level.size > 0:
            book[level.price] = level.size
        else:
            book.pop(level.price, None)
    return book


def compute_mid(best_bid: Decimal, best_ask: Decimal, has_bid: bool, has_ask: bool) -> Decimal:
    """Mid price: average of both sides, else the present side, else 0.5."""
    if has_bid and has_ask:
        return (best_bid + best_ask) / 2
    if has_bid:
        return best_bid
    if has_ask:
        return best_ask
    return UNDEFINED_MID


@dataclass(frozen=True, slots=True)
class BookSnapshot:
    """
    Full replacement view of one token's book.

    Immutable. A new snapshot is built for every book event and swapped
    into the OrderBookStore; it is never updated in place.

    Invariants:
        bids strictly descending by price, asks strictly ascending,
        no duplicate prices within a side.
    """
    asset_id: str
    market: str
    timestamp: int  # Exchange timestamp in ms (0 if absent)
    bids: tuple[PriceLevel, ...]
    asks: tuple[PriceLevel, ...]
    best_bid: Decimal
    best_ask: Decimal
    mid_price: Decimal
    hash: str = ""
    received_ts: int = 0  # Local monotonic ms

    @classmethod
    def build(
        cls,
        asset_id: str,
        market: str = "",
        timestamp: int = 0,
        bids: Iterable[PriceLevel] = (),
        asks: Iterable[PriceLevel] = (),
        hash: str = "",
        received_ts: int = 0,
    ) -> "BookSnapshot":
        """
        Build a snapshot from raw levels in any order.

        Sorts both sides, collapses duplicate prices and derives
        best bid/ask and mid.
        """
        bid_book = _collapse_levels(bids)
        ask_book = _collapse_levels(asks)

        sorted_bids = tuple(
            PriceLevel(price=px, size=sz)
            for px, sz in sorted(bid_book.items(), key=lambda kv: kv[0], reverse=True)
        )
        sorted_asks = tuple(
            PriceLevel(price=px, size=sz)
            for px, sz in sorted(ask_book.items(), key=lambda kv: kv[0])
        )

        best_bid = sorted_bids[0].price if sorted_bids else PRICE_FLOOR
        best_ask = sorted_asks[0].price if sorted_asks else PRICE_CEILING

        return cls(
            asset_id=asset_id,
            market=market,
            timestamp=timestamp,
            bids=sorted_bids,
            asks=sorted_asks,
            best_bid=best_bid,
            best_ask=best_ask,
            mid_price=compute_mid(best_bid, best_ask, bool(sorted_bids), bool(sorted_asks)),
            hash=hash,
            received_ts=received_ts,
        )

    @property
    def has_bid(self) -> bool:
        """Check if there's at least one bid."""
        return bool(self.bids)

    @property
    def has_ask(self) -> bool:
        """Check if there's at least one ask."""
        return bool(self.asks)

    @property
    def spread(self) -> Decimal:
        """Best ask minus best bid, or 0 without a bid."""
        if self.has_bid:
            return self.best_ask - self.best_bid
        return Decimal("0")

    @property
    def is_crossed(self) -> bool:
        """Two-sided book where the best bid meets or exceeds the best ask."""
        return self.has_bid and self.has_ask and self.best_bid >= self.best_ask

    def age_ms(self, now_monotonic_ms: int) -> int:
        """Return age in milliseconds."""
        return now_monotonic_ms - self.received_ts


@dataclass(frozen=True, slots=True)
class PriceChange:
    """Per-asset entry of a price_change event."""
    asset_id: str
    price: Decimal
    size: Decimal
    side: str
    best_bid: Decimal
    best_ask: Decimal
    hash: str = ""


@dataclass(frozen=True, slots=True)
class PriceChangeEvent:
    """Incremental best bid/ask update for one market."""
    market: str
    changes: tuple[PriceChange, ...] = field(default_factory=tuple)
    timestamp: int = 0


@dataclass(frozen=True, slots=True)
class LastTrade:
    """Last trade notice."""
    asset_id: str
    market: str
    price: Decimal
    size: Decimal
    side: str
    timestamp: int = 0
    fee_rate_bps: int = 0

    @property
    def order_side(self) -> Optional[Side]:
        """Aggressor side as a Side, when recognisable."""
        try:
            return Side(self.side.upper())
        except ValueError:
            return None


# Anything FeedDecoder can produce
FeedEvent = BookSnapshot | PriceChangeEvent | LastTrade


@dataclass(frozen=True, slots=True)
class PriceSample:
    """A single observed price at a local monotonic timestamp (ms)."""
    timestamp_ms: int
    price: Decimal
