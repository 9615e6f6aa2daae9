"""
Gamma API Client for Polymarket market discovery.

The Gamma API is the market metadata source: a window's market is looked
up by its slug to get token IDs, outcome prices and acceptingOrders.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from ..errors import FlashTraderError

logger = logging.getLogger(__name__)


class GammaAPIError(FlashTraderError):
    """Error from Gamma API."""
    pass


class GammaClient:
    """
    Client for Polymarket Gamma API.

    Used to look up 15-minute Up/Down markets by slug.
    """

    DEFAULT_BASE_URL = "https://gamma-api.polymarket.com"

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout_seconds: float = 10.0):
        """
        Initialize the Gamma client.

        Args:
            base_url: Gamma API base URL
            timeout_seconds: Total request timeout
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        # Recreated after close(); each asyncio.run() gets a session bound to its own loop
        session = self._session
        if session is None or session.closed:
            session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout_seconds),
            )
            self._session = session
        return session

    async def close(self) -> None:
        """Close the HTTP session; the next request opens a new one."""
        session, self._session = self._session, None
        if session is not None and not session.closed:
            await session.close()

    async def __aenter__(self) -> "GammaClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def get_market_by_slug(self, slug: str) -> Optional[dict]:
        """
        Get a market by its URL slug.

        Args:
            slug: Market slug (e.g., "btc-updown-15m-1767225600")

        Returns:
            Market dict or None if not found

        Raises:
            GammaAPIError: non-404 HTTP error, timeout or transport failure
        """
        session = await self._ensure_session()
        url = f"{self._base_url}/markets/slug/{slug}"

        try:
            async with session.get(url) as resp:
                if resp.status == 404:
                    return None
                if resp.status != 200:
                    text = await resp.text()
                    raise GammaAPIError(f"Get market failed: {resp.status} - {text}")
                data = await resp.json()
        except aiohttp.ClientError as e:
            raise GammaAPIError(f"Get market request failed: {e}")
        except asyncio.TimeoutError:
            raise GammaAPIError(f"Get market request timed out: {slug}")

        if not isinstance(data, dict):
            raise GammaAPIError(f"Unexpected market payload for {slug}: {type(data).__name__}")
        return data

