"""
15-minute Up/Down market window resolver for Polymarket.

Windows are fixed 900 second periods aligned to the epoch. A window's
market slug is built from the asset prefix and the window start in epoch
seconds:

    {prefix}-{window_start}

Example: btc-updown-15m-1767225600
"""

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

import orjson

from .gamma_client import GammaClient, GammaAPIError
from ..errors import ResolutionFailure
from ..types import MarketMetadata, to_decimal

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 900

ASSET_SLUG_PREFIXES = {
    "BTC": "btc-updown-15m",
    "ETH": "eth-updown-15m",
    "SOL": "sol-updown-15m",
    "XRP": "xrp-updown-15m",
}

DEFAULT_OUTCOMES = ["Up", "Down"]
DEFAULT_OUTCOME_PRICES = ["0.5", "0.5"]


def slug_prefix_for(asset: str) -> str:
    """
    Slug prefix for an underlying asset.

    Raises:
        ValueError: asset is not supported
    """
    prefix = ASSET_SLUG_PREFIXES.get(asset.upper())
    if prefix is None:
        supported = ", ".join(ASSET_SLUG_PREFIXES)
        raise ValueError(f"Unsupported asset: {asset}. Use: {supported}")
    return prefix


def window_start(now_s: float, window_s: int = WINDOW_SECONDS) -> int:
    """Floor a unix timestamp (seconds) to the start of its window."""
    return int(now_s) // window_s * window_s


def build_window_slug(prefix: str, start: int) -> str:
    """Build the slug of the window starting at `start` (epoch seconds)."""
    return f"{prefix}-{start}"


def _parse_json_list(value: Any, default: list) -> list:
    """Accept a list or a JSON-encoded list; anything else is empty."""
    if value is None or value == "":
        return list(default)
    if isinstance(value, str):
        try:
            value = orjson.loads(value)
        except orjson.JSONDecodeError:
            logger.warning(f"Unparsable metadata list: {value[:60]!r}")
            return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def map_outcomes(
    outcomes: list,
    values: list,
    cast: Optional[Callable[[Any], Any]] = None,
) -> dict[str, Any]:
    """
    Map outcome labels onto values by position.

    Labels are lower-cased to form the side key ("Up" -> "up"). A label
    with no value at the same index is skipped, as is a value the cast
    turns into None.
    """
    result: dict[str, Any] = {}
    for i, outcome in enumerate(outcomes):
        if i >= len(values):
            continue
        value = cast(values[i]) if cast else values[i]
        if value is None:
            continue
        result[str(outcome).lower()] = value
    return result


def parse_token_ids(market: dict) -> dict[str, str]:
    """Token id per side from clobTokenIds/outcomes."""
    token_ids = _parse_json_list(market.get("clobTokenIds"), [])
    outcomes = _parse_json_list(market.get("outcomes"), DEFAULT_OUTCOMES)
    return map_outcomes(outcomes, token_ids, cast=str)


def parse_prices(market: dict) -> dict[str, Decimal]:
    """Reference price per side from outcomePrices/outcomes."""
    prices = _parse_json_list(market.get("outcomePrices"), DEFAULT_OUTCOME_PRICES)
    outcomes = _parse_json_list(market.get("outcomes"), DEFAULT_OUTCOMES)
    return map_outcomes(outcomes, prices, cast=to_decimal)


def parse_end_time_ms(end_date: str) -> int:
    """
    Parse an API end date into epoch milliseconds.

    API returns ISO format in UTC (e.g., "2026-01-23T17:00:00Z").

    Returns:
        Epoch ms, or 0 if missing or unparsable
    """
    if not end_date:
        return 0
    # Handle both Z suffix and +00:00
    if end_date.endswith("Z"):
        end_date = end_date[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(end_date)
    except ValueError:
        logger.warning(f"Unparsable end date: {end_date!r}")
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def parse_market_metadata(market: dict, fallback_slug: str = "") -> MarketMetadata:
    """Build MarketMetadata from a Gamma market dict."""
    end_date = str(market.get("endDate") or "")
    return MarketMetadata(
        slug=str(market.get("slug") or fallback_slug),
        question=str(market.get("question") or ""),
        end_date=end_date,
        end_time_utc_ms=parse_end_time_ms(end_date),
        token_ids=parse_token_ids(market),
        prices=parse_prices(market),
        accepting_orders=bool(market.get("acceptingOrders", False)),
        condition_id=str(market.get("conditionId") or ""),
    )


class MarketWindowResolver:
    """
    Finds the currently tradable 15-minute window for an asset.

    Strategy:
    1. Floor the current time to the window length
    2. Probe the current, next and previous window slugs, in that order
    3. Return the first market that is accepting orders

    Three probes absorb clock skew and late market creation; there is no
    other retry.
    """

    def __init__(
        self,
        source: GammaClient,
        window_s: int = WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the resolver.

        Args:
            source: Metadata source with async get_market_by_slug(slug)
            window_s: Window length in seconds
            clock: Wall clock returning unix seconds
        """
        self._source = source
        self._window_s = window_s
        self._clock = clock

    @property
    def window_s(self) -> int:
        return self._window_s

    async def close(self) -> None:
        """Close the metadata source."""
        await self._source.close()

    def candidate_slugs(self, asset: str, now_s: Optional[float] = None) -> list[str]:
        """Slugs in probe order: current, next, previous."""
        prefix = slug_prefix_for(asset)
        if now_s is None:
            now_s = self._clock()
        start = window_start(now_s, self._window_s)
        return [
            build_window_slug(prefix, start),
            build_window_slug(prefix, start + self._window_s),
            build_window_slug(prefix, start - self._window_s),
        ]

    async def resolve_current_window(
        self,
        asset: str,
        now_s: Optional[float] = None,
    ) -> Optional[MarketMetadata]:
        """
        Resolve the tradable window for an asset.

        Returns:
            MarketMetadata or None if no probe found a market accepting orders

        Raises:
            ValueError: asset is not supported
        """
        for slug in self.candidate_slugs(asset, now_s):
            try:
                market = await self._source.get_market_by_slug(slug)
            except GammaAPIError as e:
                logger.warning(f"Failed to fetch market for slug {slug}: {e}")
                continue

            if market is None:
                logger.debug(f"No market found for slug: {slug}")
                continue

            if not market.get("acceptingOrders"):
                logger.info(f"Market {slug} is not accepting orders")
                continue

            metadata = parse_market_metadata(market, fallback_slug=slug)

            logger.info(f"Selected market: {metadata.question}")
            logger.info(f"  Slug: {metadata.slug}")
            logger.info(f"  UP token: {metadata.up_token_id}")
            logger.info(f"  DOWN token: {metadata.down_token_id}")
            logger.info(f"  Time remaining: {metadata.time_remaining_ms / 1000:.0f}s")
            return metadata

        logger.warning(f"No tradable window found for {asset.upper()}")
        return None

    async def require_current_window(
        self,
        asset: str,
        now_s: Optional[float] = None,
    ) -> MarketMetadata:
        """
        Like resolve_current_window, but raises when nothing is tradable.

        Raises:
            ResolutionFailure: no probe found a market accepting orders
        """
        metadata = await self.resolve_current_window(asset, now_s)
        if metadata is None:
            raise ResolutionFailure(f"No tradable window for {asset.upper()}")
        return metadata
