"""
TradeFlow CLI 入口

用法:
    tradeflow trade BUY        # 执行一次交易信号
    tradeflow run              # 从标准输入逐行读取信号 (BUY / SELL)
    tradeflow markets          # 列出支持的交易所与交易对
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .core.config import Config, load_config
from .core.exceptions import AuthenticationError, TradeFlowError
from .events import EventBus
from .exchange import EXCHANGES, create_exchange
from .trader import TradeCoordinator

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False, config: Optional[Config] = None):
    level = logging.DEBUG if debug else getattr(logging, (config.log_level if config else "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=config.log_format if config else "%(asctime)s - %(levelname)s - %(message)s"
    )


async def _build(config: Config) -> TradeCoordinator:
    events = EventBus()
    if config.metrics.enabled:
        from .metrics import record_event
        events.register(record_event)

    exchange = create_exchange(config)
    coordinator = TradeCoordinator.from_config(config, exchange, events=events)
    await coordinator.init()
    return coordinator


async def cmd_trade(args, config: Config):
    """执行一次交易信号"""
    coordinator = await _build(config)
    try:
        result = await coordinator.trade(args.action)
        if result is None:
            print(f"Unknown action: {args.action}")
        else:
            order = result.order
            print(f"{result.side.value}: {result.state.value} "
                  f"(submissions: {result.submissions}"
                  f"{', order: ' + order.order_id if order else ''})")
    finally:
        await coordinator.close()
        await coordinator.exchange.close()


async def cmd_run(args, config: Config):
    """从标准输入读取信号"""
    runner = None
    if config.metrics.enabled:
        from .metrics import start_metrics_server
        runner = await start_metrics_server(config.metrics.host, config.metrics.port)

    coordinator = await _build(config)
    loop = asyncio.get_running_loop()

    print(f"📈 TradeFlow {config.trader.pair} @ {coordinator.exchange.name}")
    print("Enter BUY / SELL, Ctrl+D to stop")

    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            action = line.strip()
            if not action:
                continue
            try:
                await coordinator.trade(action)
            except AuthenticationError as e:
                logger.error(f"{action} abandoned, check API credentials: {e}")
            except TradeFlowError as e:
                # 放弃本轮，等待下一个信号
                logger.error(f"{action} abandoned: {e}")
    finally:
        await coordinator.close()
        await coordinator.exchange.close()
        if runner:
            await runner.cleanup()


def cmd_markets(args):
    """列出支持的交易所与交易对"""
    for slug, meta in EXCHANGES.items():
        flags = []
        if meta.direct:
            flags.append("market orders")
        if meta.infinity_order:
            flags.append("unbounded order size")
        print(f"{meta.name} ({slug}){': ' + ', '.join(flags) if flags else ''}")
        for market in meta.markets:
            minimal = market.minimal_order
            print(f"  {market.asset}/{market.currency}  min {minimal.amount} {minimal.unit}")


def main():
    parser = argparse.ArgumentParser(
        prog="tradeflow",
        description="TradeFlow order execution CLI"
    )
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    parser.add_argument("-c", "--config", help="Config file (default: config/default.yaml)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    trade_parser = subparsers.add_parser("trade", help="Execute one trade signal")
    trade_parser.add_argument("action", choices=["BUY", "SELL", "buy", "sell"])

    subparsers.add_parser("run", help="Read trade signals from stdin")
    subparsers.add_parser("markets", help="List supported exchanges and pairs")

    args = parser.parse_args()

    if args.command == "markets":
        setup_logging(args.debug)
        cmd_markets(args)
        return

    if args.command not in ("trade", "run"):
        parser.print_help()
        return

    try:
        config = load_config(args.config)
    except TradeFlowError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(args.debug, config)

    try:
        if args.command == "trade":
            asyncio.run(cmd_trade(args, config))
        else:
            asyncio.run(cmd_run(args, config))
    except KeyboardInterrupt:
        pass
    except TradeFlowError as e:
        logger.critical(f"{e.code}: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
