"""
Gateway types.

Types for order requests and their results.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from .core import Side


@dataclass(frozen=True, slots=True)
class OrderRequest:
    """A limit order the strategy wants placed."""
    token_id: str
    price: Decimal
    size: Decimal
    side: Side = Side.BUY


@dataclass(slots=True)
class OrderResult:
    """
    Result of an order submission.

    A failed result is informational; nothing retries it.
    """
    success: bool
    message: str = ""
    order_id: Optional[str] = None
    status: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, response: Optional[dict]) -> "OrderResult":
        """Map a CLOB post-order response to an OrderResult."""
        if not response:
            return cls(success=False, message="No response")

        success = bool(response.get("success", False))
        error_msg = response.get("errorMsg") or response.get("error") or ""
        order_id = response.get("orderID") or response.get("orderId") or response.get("order_id")

        return cls(
            success=success,
            message=error_msg or ("Order placed successfully" if success else "Order failed"),
            order_id=order_id,
            status=response.get("status"),
            data=dict(response),
        )
