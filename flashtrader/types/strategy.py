"""
Strategy output types.
"""

from dataclasses import dataclass
from decimal import Decimal

from .core import Outcome


@dataclass(frozen=True, slots=True)
class DropSignal:
    """A detected price drop on one side."""
    side: Outcome
    reference_price: Decimal
    current_price: Decimal
    reference_ts: int  # Monotonic ms of the reference sample
    current_ts: int    # Monotonic ms of the current sample

    @property
    def drop(self) -> Decimal:
        """Reference minus current price."""
        return self.reference_price - self.current_price
