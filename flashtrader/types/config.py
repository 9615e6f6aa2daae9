"""
Market discovery types.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .core import Outcome
from .utils import wall_ms


@dataclass(frozen=True, slots=True)
class MarketMetadata:
    """
    Information about one resolved trading window.

    Immutable once fetched; the next window gets a new instance.
    """
    slug: str  # Window id, e.g. "btc-updown-15m-1767225600"
    question: str
    end_date: str  # Raw ISO string from the API
    end_time_utc_ms: int
    token_ids: dict[str, str] = field(default_factory=dict)  # "up"/"down" -> token id
    prices: dict[str, Decimal] = field(default_factory=dict)  # "up"/"down" -> reference price
    accepting_orders: bool = False
    condition_id: str = ""

    def token_for(self, side: Outcome) -> Optional[str]:
        """Token id for a side, if the metadata carried one."""
        return self.token_ids.get(side.value)

    @property
    def up_token_id(self) -> Optional[str]:
        return self.token_ids.get(Outcome.UP.value)

    @property
    def down_token_id(self) -> Optional[str]:
        return self.token_ids.get(Outcome.DOWN.value)

    @property
    def time_remaining_ms(self) -> int:
        """Time remaining until window end."""
        return max(0, self.end_time_utc_ms - wall_ms())

    def is_expired(self, now_wall_ms: Optional[int] = None) -> bool:
        """
        True once the window end has passed.

        Windows without a known end time never report expiry.
        """
        if self.end_time_utc_ms <= 0:
            return False
        if now_wall_ms is None:
            now_wall_ms = wall_ms()
        return now_wall_ms >= self.end_time_utc_ms
