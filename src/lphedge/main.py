"""Entry point for the LP + hedge backtester and live strategy.

Subcommands:
  backtest  Replay a pool over a date range and print the JSON report.
            --pools runs several pools in parallel with the same config;
            --export also writes each report's days as TSV.
  live      Run the strategy loop until SIGINT/SIGTERM.

Component wiring order (in _build_sources):
1. AppSettings (configuration)
2. Logging setup
3. SubgraphPoolClient (pool history and live position)
4. HyperliquidClient (prices, funding, hedge orders)
5. PaperTrader (paper mode hedge orders; LP actions in every mode)
"""

import argparse
import asyncio
import json
import signal
import sys
from decimal import Decimal
from pathlib import Path

from lphedge.backtest.export import DEFAULT_EXPORTS_DIR, export_report_tsv
from lphedge.backtest.models import BacktestConfig
from lphedge.backtest.runner import parse_date_range, run_backtest_cli, run_multi_pool
from lphedge.config import AppSettings
from lphedge.exceptions import LpHedgeError
from lphedge.exchange.hyperliquid_client import HyperliquidClient
from lphedge.exchange.paper import PaperTrader
from lphedge.exchange.subgraph_client import SubgraphPoolClient
from lphedge.logging import get_logger, setup_logging
from lphedge.strategy.live_loop import LiveStrategyLoop
from lphedge.strategy.runner import LiveStrategyRunner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lphedge", description="Delta-neutral LP + perp hedge")
    sub = parser.add_subparsers(dest="command", required=True)

    backtest = sub.add_parser("backtest", help="Replay pool history with a hedge")
    pool_group = backtest.add_mutually_exclusive_group(required=True)
    pool_group.add_argument("--pool", help="Pool address / subgraph id")
    pool_group.add_argument("--pools", nargs="+", help="Several pools, run in parallel")
    backtest.add_argument("--start", required=True, help="Start date YYYY-MM-DD (UTC)")
    backtest.add_argument("--end", required=True, help="End date YYYY-MM-DD (UTC)")
    backtest.add_argument("--capital", type=Decimal, default=None, help="Initial capital in USD")
    backtest.add_argument(
        "--position-type", default=None, help='"full-range" or a band like "10%%"'
    )
    backtest.add_argument("--asset", default=None, help="Hedged perp asset (default from settings)")
    backtest.add_argument(
        "--export", action="store_true", help="Also write per-day rows as TSV under exports/<venue>/"
    )
    backtest.add_argument("--exports-dir", type=Path, default=DEFAULT_EXPORTS_DIR, help="Export root")

    sub.add_parser("live", help="Run the live strategy loop")
    return parser


def _build_sources(settings: AppSettings) -> tuple[SubgraphPoolClient, HyperliquidClient]:
    pool_source = SubgraphPoolClient(settings.subgraph, venue=settings.lp.venue)
    perp_client = HyperliquidClient(settings.hyperliquid)
    return pool_source, perp_client


async def run_backtest_command(args: argparse.Namespace, settings: AppSettings) -> int:
    logger = get_logger("lphedge.main")
    if args.asset:
        settings.strategy.asset = args.asset
    pool_source, perp_client = _build_sources(settings)

    try:
        await perp_client.connect()
        if args.pools:
            start_ms, end_ms = parse_date_range(args.start, args.end)
            base = BacktestConfig(
                pool_id=args.pools[0],
                start_ms=start_ms,
                end_ms=end_ms,
                initial_capital=args.capital or settings.backtest.default_initial_capital,
                position_type=args.position_type or settings.lp.position_type,
                asset=settings.strategy.asset,
                tick_spacing=settings.lp.tick_spacing,
            )
            result = await run_multi_pool(args.pools, base, pool_source, perp_client, settings)
            output = result.to_dict()
            reports = [report for _, report, _ in result.results if report is not None]
        else:
            report = await run_backtest_cli(
                args.pool,
                args.start,
                args.end,
                pool_source,
                perp_client,
                initial_capital=args.capital,
                position_type=args.position_type,
                settings=settings,
            )
            output = report.to_dict()
            reports = [report]

        if args.export:
            for report in reports:
                export_report_tsv(report, settings.lp.venue, args.exports_dir)
    except (LpHedgeError, ValueError, OSError) as e:
        logger.error("backtest_failed", error=str(e))
        return 1
    finally:
        await perp_client.close()
        await pool_source.close()

    print(json.dumps(output, indent=2))
    return 0


def _setup_signal_handlers(runner: LiveStrategyRunner) -> None:
    """SIGINT/SIGTERM stop the runner after the in-flight tick."""
    logger = get_logger("lphedge.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(runner.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def run_live_command(settings: AppSettings) -> int:
    logger = get_logger("lphedge.main")
    live = settings.strategy
    pool_source, perp_client = _build_sources(settings)

    paper = PaperTrader(price_source=perp_client)
    trader = paper if live.mode == "paper" else perp_client
    if live.mode == "live":
        logger.warning(
            "liquidity_actions_simulated",
            note="Liquidity removal and fee collection have no on-chain implementation; "
            "they are recorded by the paper trader only.",
        )

    loop = LiveStrategyLoop(
        pool_source=pool_source,
        perp_source=perp_client,
        trader=trader,
        liquidity=paper,
        live_settings=live,
        hedge_settings=settings.hedge,
        lp_settings=settings.lp,
    )
    runner = LiveStrategyRunner(loop, poll_interval_seconds=live.poll_interval_seconds)
    _setup_signal_handlers(runner)

    logger.info(
        "live_strategy_starting",
        mode=live.mode,
        asset=live.asset,
        pool=live.pool_address,
        hedge_enabled=live.hedge_enabled,
    )
    try:
        await perp_client.connect()
        await runner.start()
    finally:
        await perp_client.close()
        await pool_source.close()
        logger.info("live_strategy_stopped", exits=runner.state.exits)
    return 0


async def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)

    if args.command == "backtest":
        return await run_backtest_command(args, settings)
    return await run_live_command(settings)


def main() -> None:
    """Synchronous entry point."""
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
