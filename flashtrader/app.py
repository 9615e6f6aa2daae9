"""
Flash crash trader entry point.

Wires configuration, the market session, the order gateway and the
strategy, then runs the strategy on the main thread until SIGINT/SIGTERM.

Usage:
    flashtrader --coin BTC --drop 0.25 --dry-run
"""

import argparse
import dataclasses
import logging
import signal
import sys
from decimal import Decimal
from typing import Optional

from .clients import ASSET_SLUG_PREFIXES
from .config import AppConfig
from .errors import ConfigError
from .gateway import OrderGateway, PaperGateway, PolymarketGateway
from .session import MarketSession
from .strategy import FlashCrashStrategy
from .types import to_decimal

logger = logging.getLogger(__name__)


def _decimal_arg(value: str) -> Decimal:
    result = to_decimal(value)
    if result is None:
        raise argparse.ArgumentTypeError(f"not a decimal: {value!r}")
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flashtrader",
        description="Buy flash crashes in Polymarket 15-minute Up/Down markets",
    )
    parser.add_argument(
        "--coin",
        type=str.upper,
        choices=sorted(ASSET_SLUG_PREFIXES),
        help="Underlying asset (default: ETH)",
    )
    parser.add_argument("--size", type=_decimal_arg, help="USDC notional per order (default: 5.0)")
    parser.add_argument("--drop", type=_decimal_arg, help="Drop threshold as a probability (default: 0.30)")
    parser.add_argument("--lookback", type=float, help="Lookback window in seconds (default: 10)")
    parser.add_argument("--cooldown", type=float, help="Seconds between orders on one side (default: 30)")
    parser.add_argument(
        "--auto-rollover",
        action="store_true",
        default=None,
        help="Follow the next 15-minute window when the current one ends",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Record orders locally instead of sending them",
    )
    parser.add_argument("--env-file", help="Load POLY_* variables from this file first")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    return parser


def apply_args(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Override config values with the command line flags that were given."""
    overrides = {
        "coin": args.coin,
        "size": args.size,
        "drop": args.drop,
        "lookback": args.lookback,
        "cooldown": args.cooldown,
        "auto_rollover": args.auto_rollover,
        "dry_run": args.dry_run,
        "log_level": args.log_level,
    }
    return dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})


def create_gateway(config: AppConfig) -> OrderGateway:
    if config.dry_run:
        logger.info("Dry run: orders are recorded, not sent")
        return PaperGateway()
    return PolymarketGateway(
        private_key=config.private_key,
        funder=config.proxy_wallet,
        signature_type=config.signature_type,
        host=config.clob_host,
        chain_id=config.chain_id,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Load config
    try:
        if args.env_file:
            config = AppConfig.from_env_file(args.env_file)
        else:
            config = AppConfig.from_env()
    except ConfigError as e:
        logger.error(f"Config error: {e}")
        return 2

    config = apply_args(config, args)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        return 2

    # Override log level if configured
    if config.log_level:
        logging.getLogger().setLevel(config.log_level.upper())

    gateway = create_gateway(config)
    session = MarketSession(
        config.coin,
        gamma_host=config.gamma_host,
        ws_url=config.ws_market_url,
    )
    strategy = FlashCrashStrategy(session, gateway, config.to_strategy_config())

    def signal_handler(signum, frame):
        logger.warning(f"Received signal {signum} - stopping")
        strategy.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        strategy.run()
    finally:
        gateway.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
