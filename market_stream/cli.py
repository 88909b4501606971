"""
Command line entry point.

    market-stream dynamic --topic btcusdt@trade --topic ethusdt@kline_1m
    market-stream fixed --symbol btcusdt --stream aggTrade --testnet
    market-stream dynamic --config market_stream.yaml --dump-config
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional, Sequence

from market_stream.client import StreamClient
from market_stream.config import AppConfig, ConfigError, load_config
from market_stream.core import configure_logging, get_logger
from market_stream.core.exceptions import ProtocolViolation
from market_stream.core.models import (
    AggTradeEvent,
    KlineEvent,
    MarketEvent,
    TickerEvent,
    TradeEvent,
)
from market_stream.stream import HELP_TEXT, CommandOutcome, UserCommand, start_console_reader

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="YAML configuration file")
    common.add_argument("--env", help="Environment overlay, loads <config>.<env>.yaml")
    common.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    common.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the resolved configuration as YAML and exit",
    )
    network = common.add_mutually_exclusive_group()
    network.add_argument("--testnet", dest="testnet", action="store_true", default=None)
    network.add_argument("--mainnet", dest="testnet", action="store_false")

    parser = argparse.ArgumentParser(
        prog="market-stream",
        description="Binance public market data stream client",
    )
    subparsers = parser.add_subparsers(dest="mode", required=True)

    dynamic = subparsers.add_parser("dynamic", parents=[common], help="Manage subscriptions at runtime")
    dynamic.add_argument(
        "--topic",
        action="append",
        dest="topics",
        metavar="TOPIC",
        help="Initial topic, repeatable (default: ethusdt@trade)",
    )

    fixed = subparsers.add_parser("fixed", parents=[common], help="Connect to a single stream URL")
    fixed.add_argument("--symbol", help="Symbol, e.g. btcusdt")
    fixed.add_argument("--stream", help="Stream name, e.g. trade, aggTrade, kline_1m")

    return parser


def resolve_config(args: argparse.Namespace) -> AppConfig:
    """Load the configuration file (if any) and apply command line overrides."""
    config = load_config(args.config, env=args.env)

    stream: dict = {"mode": args.mode}
    if args.testnet is not None:
        stream["testnet"] = args.testnet
    if args.mode == "dynamic" and args.topics:
        stream["initial_topics"] = args.topics
    if args.mode == "fixed":
        if args.symbol:
            stream["symbol"] = args.symbol
        if args.stream:
            stream["stream"] = args.stream

    overrides: dict = {"stream": stream}
    if args.log_level:
        overrides["log_level"] = args.log_level
    return config.with_overrides(**overrides)


def format_event(event: MarketEvent) -> str:
    """One-line console rendering of an event."""
    if isinstance(event, TradeEvent):
        side = "SELL" if event.is_buyer_maker else "BUY"
        return f"[trade] {event.symbol} {side} {event.quantity} @ {event.price}"
    if isinstance(event, AggTradeEvent):
        return (
            f"[aggTrade] {event.symbol} {event.quantity} @ {event.price} "
            f"({event.trade_count} trades)"
        )
    if isinstance(event, TickerEvent):
        return (
            f"[ticker] {event.symbol} last={event.last_price} "
            f"bid={event.best_bid} ask={event.best_ask} "
            f"change={event.price_change_percent}%"
        )
    if isinstance(event, KlineEvent):
        state = "closed" if event.is_closed else "open"
        return (
            f"[kline {event.interval.value}] {event.symbol} "
            f"O={event.open} H={event.high} L={event.low} C={event.close} "
            f"V={event.volume} ({state})"
        )
    return repr(event)


def print_event(event: MarketEvent) -> None:
    print(format_event(event))


def print_outcome(outcome: CommandOutcome) -> None:
    if outcome.ok:
        print(f"OK   id={outcome.request_id} {outcome.intent.describe()}")
    else:
        print(f"FAIL id={outcome.request_id} {outcome.intent.describe()}: {outcome.error}")


async def run(config: AppConfig) -> int:
    """Run the client with a stdin command channel until it stops."""
    commands: asyncio.Queue = asyncio.Queue()
    client = StreamClient(
        config,
        commands=commands,
        on_event=print_event,
        on_outcome=print_outcome,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, commands.put_nowait, UserCommand.quit())
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
            break

    print("=" * 60)
    print(f"  {config.app_name} ({config.stream.mode} mode, {'testnet' if config.is_testnet else 'mainnet'})")
    print("=" * 60)
    print(HELP_TEXT)

    start_console_reader(commands, loop)
    try:
        await client.run()
    except ProtocolViolation as e:
        logger.critical(f"Stopped on protocol violation: {e}")
        return 2
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.dump_config:
        print(config.to_yaml(), end="")
        return 0

    configure_logging(level=config.log_level, log_file=config.log_file)
    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
