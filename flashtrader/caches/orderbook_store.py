"""
Per-token order book store.

Holds the latest BookSnapshot for every subscribed token. Writes come from
a single writer (the market feed thread); readers (session listeners, the
strategy tick) may run on any thread.

Every write builds a new immutable mapping and swaps it in under one lock,
so a reader always sees whole snapshots and never waits on a decode.
"""

import threading
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from ..types import (
    BookSnapshot,
    PRICE_CEILING,
    PRICE_FLOOR,
    UNDEFINED_MID,
    now_ms,
)

_EMPTY: Mapping[str, BookSnapshot] = MappingProxyType({})


class OrderBookStore:
    """
    Thread-safe latest-snapshot store keyed by token id.

    - Single writer (market feed)
    - Multiple readers (session, strategy)
    - Snapshots replaced wholesale, never merged
    """

    def __init__(self):
        self._books: Mapping[str, BookSnapshot] = _EMPTY
        self._seq: int = 0
        self._lock = threading.Lock()

    def apply_snapshot(self, snapshot: BookSnapshot) -> int:
        """
        Replace the stored book for snapshot.asset_id.

        Returns:
            New store sequence number
        """
        with self._lock:
            books = dict(self._books)
            books[snapshot.asset_id] = snapshot
            self._books = MappingProxyType(books)
            self._seq += 1
            return self._seq

    def retain(self, asset_ids: Iterable[str]) -> int:
        """
        Drop books for tokens not in asset_ids.

        Returns:
            Number of books removed
        """
        keep = set(asset_ids)
        with self._lock:
            books = {k: v for k, v in self._books.items() if k in keep}
            removed = len(self._books) - len(books)
            if removed:
                self._books = MappingProxyType(books)
                self._seq += 1
            return removed

    def clear(self) -> None:
        """Drop every book (market transitions)."""
        with self._lock:
            self._books = _EMPTY
            self._seq += 1

    def get(self, asset_id: str) -> Optional[BookSnapshot]:
        """Latest snapshot for a token, or None."""
        return self._books.get(asset_id)

    def snapshot_all(self) -> Mapping[str, BookSnapshot]:
        """Read-only view of every book at one instant."""
        return self._books

    def best_bid(self, asset_id: str) -> Decimal:
        """Best bid, 0 if absent."""
        book = self.get(asset_id)
        return book.best_bid if book else PRICE_FLOOR

    def best_ask(self, asset_id: str) -> Decimal:
        """Best ask, 1 if absent."""
        book = self.get(asset_id)
        return book.best_ask if book else PRICE_CEILING

    def mid(self, asset_id: str) -> Decimal:
        """Mid price, 0.5 if absent."""
        book = self.get(asset_id)
        return book.mid_price if book else UNDEFINED_MID

    def spread(self, asset_id: str) -> Decimal:
        """Ask minus bid when a bid exists, else 0."""
        book = self.get(asset_id)
        return book.spread if book else Decimal("0")

    def age_ms(self, asset_id: str, ts: Optional[int] = None) -> int:
        """
        Age of a token's book in milliseconds.

        Returns:
            Age in ms, or 999999 if no book
        """
        book = self.get(asset_id)
        if book is None:
            return 999999
        if ts is None:
            ts = now_ms()
        return book.age_ms(ts)

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._books

    def __len__(self) -> int:
        return len(self._books)

    @property
    def has_data(self) -> bool:
        """Check if any book has been stored."""
        return bool(self._books)

    @property
    def seq(self) -> int:
        """Current sequence number."""
        return self._seq
