"""
Order gateway interface.

The only path by which the strategy writes to the outside world.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from ..types import OrderResult, Side


class OrderGateway(ABC):
    """
    Submits limit orders.

    Implementations never raise for a rejected or failed order; they return
    a failed OrderResult, which the caller treats as informational.
    """

    @abstractmethod
    def submit(
        self,
        token_id: str,
        price: Decimal,
        size: Decimal,
        side: Side = Side.BUY,
    ) -> OrderResult:
        """
        Submit a limit order.

        Args:
            token_id: Token to trade
            price: Limit price in (0, 1)
            size: Size in shares
            side: BUY or SELL

        Returns:
            OrderResult describing the outcome
        """
        pass

    def close(self) -> None:
        """Release resources. Override if needed."""
        pass
