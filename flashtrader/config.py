"""
Application configuration.

Loads settings from POLY_* environment variables with sensible defaults.
"""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal

from .clients import ASSET_SLUG_PREFIXES, GammaClient
from .errors import ConfigError
from .feeds import PM_MARKET_WS_URL
from .gateway import DEFAULT_CLOB_HOST
from .strategy import FlashCrashConfig
from .types import to_decimal

ENV_PREFIX = "POLY_"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


def _env_decimal(name: str, default: str) -> Decimal:
    raw = _env(name, default)
    value = to_decimal(raw)
    if value is None:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a decimal, got {raw!r}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass
class AppConfig:
    """Application configuration."""

    # API credentials
    private_key: str = ""
    proxy_wallet: str = ""
    signature_type: int = 2

    # URLs
    clob_host: str = DEFAULT_CLOB_HOST
    chain_id: int = 137
    gamma_host: str = GammaClient.DEFAULT_BASE_URL
    ws_market_url: str = PM_MARKET_WS_URL

    # Strategy
    coin: str = "ETH"
    size: Decimal = Decimal("5.0")
    drop: Decimal = Decimal("0.30")
    lookback: float = 10.0
    cooldown: float = 30.0
    auto_rollover: bool = False

    # Mode
    dry_run: bool = False

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Load config from environment variables.

        Raises:
            ConfigError: a numeric variable cannot be parsed
        """
        return cls(
            # Credentials
            private_key=_env("PRIVATE_KEY", ""),
            proxy_wallet=_env("PROXY_WALLET", ""),
            signature_type=_env_int("SIGNATURE_TYPE", 2),

            # URLs
            clob_host=_env("CLOB_HOST", DEFAULT_CLOB_HOST),
            chain_id=_env_int("CHAIN_ID", 137),
            gamma_host=_env("GAMMA_HOST", GammaClient.DEFAULT_BASE_URL),
            ws_market_url=_env("WS_MARKET_URL", PM_MARKET_WS_URL),

            # Strategy
            coin=_env("COIN", "ETH").upper(),
            size=_env_decimal("SIZE", "5.0"),
            drop=_env_decimal("DROP", "0.30"),
            lookback=_env_float("LOOKBACK", 10.0),
            cooldown=_env_float("COOLDOWN", 30.0),
            auto_rollover=_env_bool("AUTO_ROLLOVER", False),

            # Mode
            dry_run=_env_bool("DRY_RUN", False),

            # Logging
            log_level=_env("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_env_file(cls, path: str) -> "AppConfig":
        """
        Load config from .env file, then environment variables.

        Environment variables override file values.
        """
        # Read env file if exists
        if os.path.exists(path):
            with open(path) as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    if line.startswith("export "):
                        line = line[len("export "):]
                    if "=" in line:
                        key, value = line.split("=", 1)
                        key = key.strip()
                        value = value.strip().strip("'\"")
                        # Only set if not already in environment
                        if key not in os.environ:
                            os.environ[key] = value

        return cls.from_env()

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.coin.upper() not in ASSET_SLUG_PREFIXES:
            errors.append(f"{ENV_PREFIX}COIN must be one of {', '.join(ASSET_SLUG_PREFIXES)}")

        if self.size <= 0:
            errors.append(f"{ENV_PREFIX}SIZE must be positive")

        if not (0 < self.drop < 1):
            errors.append(f"{ENV_PREFIX}DROP must be between 0 and 1")

        if self.lookback <= 0:
            errors.append(f"{ENV_PREFIX}LOOKBACK must be positive")

        if self.cooldown < 0:
            errors.append(f"{ENV_PREFIX}COOLDOWN must not be negative")

        if self.signature_type not in (0, 1, 2):
            errors.append(f"{ENV_PREFIX}SIGNATURE_TYPE must be 0, 1 or 2")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            errors.append(f"{ENV_PREFIX}LOG_LEVEL is not a logging level: {self.log_level}")

        if not self.dry_run:
            if not self.private_key:
                errors.append(f"{ENV_PREFIX}PRIVATE_KEY is required for live trading")
            if not self.proxy_wallet:
                errors.append(f"{ENV_PREFIX}PROXY_WALLET is required for live trading")

        return errors

    def to_strategy_config(self) -> FlashCrashConfig:
        """Strategy parameters from this config."""
        return FlashCrashConfig(
            coin=self.coin.upper(),
            size=self.size,
            drop_threshold=self.drop,
            lookback_s=self.lookback,
            cooldown_s=self.cooldown,
            auto_rollover=self.auto_rollover,
        )
