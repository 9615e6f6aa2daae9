"""
Bounded per-side price history.
"""

import threading
from collections import deque
from decimal import Decimal
from typing import Optional

from ..types import PriceSample

DEFAULT_HISTORY_CAPACITY = 100


class PriceHistory:
    """
    FIFO of PriceSamples with a fixed capacity.

    Appended from the feed thread (book listener), read from the strategy
    tick. The oldest sample is evicted on overflow, which also bounds the
    lookback scan regardless of the configured lookback duration.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY):
        self._samples: deque[PriceSample] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, timestamp_ms: int, price: Decimal) -> None:
        with self._lock:
            self._samples.append(PriceSample(timestamp_ms=timestamp_ms, price=price))

    def samples(self) -> tuple[PriceSample, ...]:
        """Oldest-first copy of the history."""
        with self._lock:
            return tuple(self._samples)

    @property
    def latest(self) -> Optional[PriceSample]:
        with self._lock:
            return self._samples[-1] if self._samples else None

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)
