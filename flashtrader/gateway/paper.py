"""
Paper order gateway for dry runs.
"""

import logging
import threading
from decimal import Decimal

from .base import OrderGateway
from ..types import OrderRequest, OrderResult, Side

logger = logging.getLogger(__name__)


class PaperGateway(OrderGateway):
    """Records orders instead of sending them. Every order succeeds."""

    def __init__(self):
        self._orders: list[OrderRequest] = []
        self._lock = threading.Lock()

    def submit(
        self,
        token_id: str,
        price: Decimal,
        size: Decimal,
        side: Side = Side.BUY,
    ) -> OrderResult:
        request = OrderRequest(token_id=token_id, price=price, size=size, side=side)
        with self._lock:
            self._orders.append(request)
            order_id = f"paper-{len(self._orders)}"

        logger.info(
            f"PaperGateway: {side.value} {size:.2f} @ {price:.4f} "
            f"token={token_id[:16]}... id={order_id}"
        )
        return OrderResult(
            success=True,
            message="Paper order recorded",
            order_id=order_id,
            status="paper",
        )

    @property
    def orders(self) -> list[OrderRequest]:
        """Recorded orders, oldest first."""
        with self._lock:
            return list(self._orders)
