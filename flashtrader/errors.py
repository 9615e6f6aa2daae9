"""Custom exceptions for the flash crash trading system.

None of these are fatal to the process: the worst outcome of any one of
them is that a message, an order attempt, or a session start is skipped.
"""


class FlashTraderError(Exception):
    """Base exception for flashtrader errors."""
    pass


class TransportError(FlashTraderError):
    """Connect, send or receive failure on the stream. Recovered by reconnecting."""
    pass


class DecodeError(FlashTraderError):
    """A single feed message could not be decoded. The message is dropped."""
    pass


class ResolutionFailure(FlashTraderError):
    """No tradable window was found for the requested asset."""
    pass


class GatewayError(FlashTraderError):
    """Order submission failed. Surfaced as a failed OrderResult."""
    pass


class ConfigError(FlashTraderError):
    """Raised when configuration is invalid."""
    pass
