"""
Polymarket CLOB order gateway.

Uses py-clob-client for order signing and submission.
"""

import logging
import threading
from decimal import Decimal, ROUND_DOWN
from enum import Enum

from .base import OrderGateway
from ..errors import ConfigError, GatewayError
from ..types import OrderResult, Side

logger = logging.getLogger(__name__)

DEFAULT_CLOB_HOST = "https://clob.polymarket.com"


class OrderType(Enum):
    """Order type for Polymarket."""
    GTC = "GTC"  # Good-till-cancelled
    GTD = "GTD"  # Good-till-date
    FOK = "FOK"  # Fill-or-kill


class PolymarketGateway(OrderGateway):
    """
    Order gateway backed by py-clob-client.

    The CLOB client is created and API credentials derived on first
    submit. Any failure, including initialization, becomes a failed
    OrderResult.
    """

    def __init__(
        self,
        private_key: str,
        funder: str = "",
        signature_type: int = 2,
        host: str = DEFAULT_CLOB_HOST,
        chain_id: int = 137,
        order_type: OrderType = OrderType.GTC,
        tick_size: Decimal = Decimal("0.01"),
        size_step: Decimal = Decimal("0.01"),
    ):
        """
        Initialize the gateway.

        Args:
            private_key: Wallet private key (0x prefixed)
            funder: Proxy wallet address holding the funds
            signature_type: 0 for EOA, 1 for email/Magic, 2 for browser proxy
            host: CLOB API host URL
            chain_id: Polygon chain ID (137 for mainnet)
            order_type: Time in force for submitted orders
            tick_size: Limit prices are rounded down to this step
            size_step: Sizes are rounded down to this step

        Raises:
            ConfigError: private key missing
        """
        if not private_key:
            raise ConfigError("PolymarketGateway requires a private key")

        self._private_key = private_key
        self._funder = funder
        self._signature_type = signature_type
        self._host = host
        self._chain_id = chain_id
        self._order_type = order_type
        self._tick_size = tick_size
        self._size_step = size_step

        self._client = None
        self._initialized = False
        self._lock = threading.Lock()

    def _ensure_initialized(self) -> None:
        """Initialize the CLOB client lazily."""
        if self._initialized:
            return

        try:
            from py_clob_client.client import ClobClient

            self._client = ClobClient(
                host=self._host,
                chain_id=self._chain_id,
                key=self._private_key,
                funder=self._funder if self._funder else None,
                signature_type=self._signature_type,
            )

            # Derive API credentials for authenticated requests
            creds = self._client.derive_api_key()
            self._client.set_api_creds(creds)

            self._initialized = True
            logger.info("PolymarketGateway initialized")

        except Exception as e:
            logger.error(f"Failed to initialize CLOB client: {e}")
            raise GatewayError(f"CLOB client initialization failed: {e}") from e

    def submit(
        self,
        token_id: str,
        price: Decimal,
        size: Decimal,
        side: Side = Side.BUY,
    ) -> OrderResult:
        limit_price = Decimal(price).quantize(self._tick_size, rounding=ROUND_DOWN)
        order_size = Decimal(size).quantize(self._size_step, rounding=ROUND_DOWN)

        if limit_price <= 0 or order_size <= 0:
            return OrderResult(
                success=False,
                message=f"Order rounds to nothing: price={limit_price} size={order_size}",
            )

        with self._lock:
            try:
                self._ensure_initialized()

                from py_clob_client.order_builder.constants import BUY, SELL
                from py_clob_client.clob_types import OrderArgs

                order_args = OrderArgs(
                    token_id=token_id,
                    price=float(limit_price),
                    size=float(order_size),
                    side=BUY if side == Side.BUY else SELL,
                )

                # Build and sign order
                order = self._client.create_order(order_args)

                # Submit order
                response = self._client.post_order(order, self._order_type.value)

            except Exception as e:
                logger.warning(f"Order placement failed: {e}")
                return OrderResult(success=False, message=str(e) or "Failed to place order")

        return OrderResult.from_response(response)
