"""
Strategy module for the trading system.

- PriceHistory: Bounded per-side price samples
- detect_drop: Flash crash detection rule
- FlashCrashStrategy / FlashCrashConfig: Buys the crashed side
"""

from .history import PriceHistory, DEFAULT_HISTORY_CAPACITY
from .detector import detect_drop
from .flash_crash import FlashCrashStrategy, FlashCrashConfig

__all__ = [
    "PriceHistory",
    "DEFAULT_HISTORY_CAPACITY",
    "detect_drop",
    "FlashCrashStrategy",
    "FlashCrashConfig",
]
