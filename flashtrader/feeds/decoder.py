"""
Market channel message decoder.

Turns raw websocket payloads into typed events:
- "book"             -> BookSnapshot (full replacement)
- "price_change"     -> PriceChangeEvent (per-asset best bid/ask)
- "last_trade_price" -> LastTrade

Unknown event types are ignored. A malformed message raises DecodeError
from decode_event(); decode() logs and drops malformed items so one bad
entry in a batch never takes down its neighbours.
"""

import logging
from decimal import Decimal
from typing import Any, Optional, Union

import orjson

from ..errors import DecodeError
from ..types import (
    BookSnapshot,
    FeedEvent,
    FeedEventType,
    LastTrade,
    PriceChange,
    PriceChangeEvent,
    PriceLevel,
    now_ms,
    to_decimal,
    to_int,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_ONE = Decimal("1")


def _optional_decimal(data: dict, key: str, default: Decimal) -> Decimal:
    """Missing -> default; present but unparsable -> DecodeError."""
    raw = data.get(key)
    if raw is None or raw == "":
        return default
    value = to_decimal(raw)
    if value is None:
        raise DecodeError(f"Unparsable {key}: {raw!r}")
    return value


def _required_decimal(data: dict, key: str) -> Decimal:
    value = to_decimal(data.get(key))
    if value is None:
        raise DecodeError(f"Missing or unparsable {key}: {data.get(key)!r}")
    return value


class FeedDecoder:
    """
    Stateless decoder for the Polymarket market channel.

    Keeps only counters; safe to share but used from the feed thread only.
    """

    def __init__(self):
        self._decoded = 0
        self._errors = 0
        self._ignored = 0
        self._dropped_levels = 0

    def decode(self, raw: Union[bytes, str]) -> list[FeedEvent]:
        """
        Decode one websocket payload.

        The payload is a JSON object or an array of objects.

        Raises:
            DecodeError: payload is not JSON or not an object/array
        """
        try:
            msg = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            self._errors += 1
            raise DecodeError(f"Invalid JSON: {e}") from e

        if isinstance(msg, dict):
            items = [msg]
        elif isinstance(msg, list):
            items = msg
        else:
            self._errors += 1
            raise DecodeError(f"Unexpected payload type: {type(msg).__name__}")

        events: list[FeedEvent] = []
        for item in items:
            try:
                event = self.decode_event(item)
            except DecodeError as e:
                logger.warning(f"FeedDecoder: Dropping malformed event: {e}")
                continue
            if event is not None:
                events.append(event)
        return events

    def decode_event(self, data: Any) -> Optional[FeedEvent]:
        """
        Decode a single event object.

        Returns:
            Typed event, or None for unknown event types

        Raises:
            DecodeError: required fields missing or unparsable
        """
        if not isinstance(data, dict):
            self._errors += 1
            raise DecodeError(f"Event is not an object: {type(data).__name__}")

        event_type = data.get("event_type") or ""

        try:
            if event_type == FeedEventType.BOOK.value:
                event = self._parse_book(data)
            elif event_type == FeedEventType.PRICE_CHANGE.value:
                event = self._parse_price_change(data)
            elif event_type == FeedEventType.LAST_TRADE_PRICE.value:
                event = self._parse_last_trade(data)
            else:
                # tick_size_change, best_bid_ask, acks...
                self._ignored += 1
                return None
        except DecodeError:
            self._errors += 1
            raise

        self._decoded += 1
        return event

    def _parse_book(self, data: dict) -> BookSnapshot:
        asset_id = data.get("asset_id")
        if not asset_id:
            raise DecodeError("Book event without asset_id")

        return BookSnapshot.build(
            asset_id=str(asset_id),
            market=str(data.get("market") or ""),
            timestamp=to_int(data.get("timestamp")),
            bids=self._parse_levels(data.get("bids") or [], asset_id),
            asks=self._parse_levels(data.get("asks") or [], asset_id),
            hash=str(data.get("hash") or ""),
            received_ts=now_ms(),
        )

    def _parse_levels(self, raw_levels: Any, asset_id: str) -> list[PriceLevel]:
        """Parse levels, dropping any that are unparsable or out of range."""
        if not isinstance(raw_levels, list):
            raise DecodeError(f"Book levels for {asset_id} are not a list")

        levels = []
        for raw in raw_levels:
            if not isinstance(raw, dict):
                self._dropped_levels += 1
                continue
            price = to_decimal(raw.get("price"))
            size = to_decimal(raw.get("size"))
            if price is None or size is None:
                self._dropped_levels += 1
                continue
            level = PriceLevel(price=price, size=size)
            if not level.is_valid:
                self._dropped_levels += 1
                continue
            levels.append(level)
        return levels

    def _parse_price_change(self, data: dict) -> PriceChangeEvent:
        raw_changes = data.get("price_changes", [])
        if not isinstance(raw_changes, list):
            raise DecodeError("price_changes is not a list")

        changes = []
        for change in raw_changes:
            if not isinstance(change, dict):
                raise DecodeError("price_changes entry is not an object")
            changes.append(PriceChange(
                asset_id=str(change.get("asset_id") or ""),
                price=_optional_decimal(change, "price", _ZERO),
                size=_optional_decimal(change, "size", _ZERO),
                side=str(change.get("side") or ""),
                best_bid=_optional_decimal(change, "best_bid", _ZERO),
                best_ask=_optional_decimal(change, "best_ask", _ONE),
                hash=str(change.get("hash") or ""),
            ))

        return PriceChangeEvent(
            market=str(data.get("market") or ""),
            changes=tuple(changes),
            timestamp=to_int(data.get("timestamp")),
        )

    def _parse_last_trade(self, data: dict) -> LastTrade:
        return LastTrade(
            asset_id=str(data.get("asset_id") or ""),
            market=str(data.get("market") or ""),
            price=_required_decimal(data, "price"),
            size=_required_decimal(data, "size"),
            side=str(data.get("side") or ""),
            timestamp=to_int(data.get("timestamp")),
            fee_rate_bps=to_int(data.get("fee_rate_bps")),
        )

    @property
    def stats(self) -> dict:
        """Decoder counters."""
        return {
            "decoded": self._decoded,
            "errors": self._errors,
            "ignored": self._ignored,
            "dropped_levels": self._dropped_levels,
        }
