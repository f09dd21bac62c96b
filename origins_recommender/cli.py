"""Command-line interface for the position recommender."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from datetime import timedelta

from .app import build_scheduler
from .config import AppConfig, load_config
from .errors import ConfigError, FetchError
from .logging_setup import configure_logging
from .oracles import UniswapGraphClient
from .services.report import format_failure, format_result

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="origins-recommender",
        description="On-chain position scoring and recommendation engine",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to config.yaml (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging (same as --log-level DEBUG)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("once", help="Run a single recommendation cycle and print it")

    run_parser = sub.add_parser("run", help="Run recommendation cycles continuously")
    run_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Seconds between cycles (overrides recommendation_interval)",
    )

    pools_parser = sub.add_parser("pools", help="List top Uniswap v3 pools by TVL")
    pools_parser.add_argument(
        "count", nargs="?", type=int, default=10, help="Number of pools (default: 10)"
    )

    return parser


def _with_interval(config: AppConfig, interval: int | None) -> AppConfig:
    if interval is None:
        return config
    if interval <= 0:
        raise ConfigError("Interval must be positive")
    scheduler = dataclasses.replace(
        config.scheduler, recommendation_interval=timedelta(seconds=interval)
    )
    return dataclasses.replace(config, scheduler=scheduler)


async def _run_once(config: AppConfig) -> int:
    scheduler = build_scheduler(config)
    result = await scheduler.run_once()
    if result is None:
        if scheduler.last_failure is not None:
            print(format_failure(scheduler.last_failure))
        return 1
    print(format_result(result))
    return 0


async def _run_forever(config: AppConfig) -> int:
    scheduler = build_scheduler(config)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            logger.debug("Signal handlers not supported on this platform")
    await scheduler.run(stop)
    return 0


async def _list_pools(config: AppConfig, count: int) -> int:
    client = UniswapGraphClient(config.market_data.uniswap)
    pools = await client.top_pools(count)
    for i, pool in enumerate(pools, start=1):
        print(
            f"{i}. {pool.id} | {pool.token0_symbol}-{pool.token1_symbol} | "
            f"TVL(USD): {pool.total_value_locked_usd:,.2f} | "
            f"Volume(USD): {pool.volume_usd:,.2f}"
        )
    return 0


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command and return the exit code."""
    configure_logging("DEBUG" if args.verbose else args.log_level)
    logger.info("Starting Origins position recommender")

    try:
        config = load_config(args.config)
        if args.command == "once":
            return await _run_once(config)
        if args.command == "run":
            return await _run_forever(_with_interval(config, args.interval))
        if args.command == "pools":
            return await _list_pools(config, args.count)
    except (ConfigError, FileNotFoundError) as e:
        logger.error("Configuration error: %s", e)
        return 2
    except FetchError as e:
        logger.error("%s", e)
        return 1

    build_parser().print_help()
    return 1


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
