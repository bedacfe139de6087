"""High-level entry points for running backtests.

Provides run_backtest() for a single pool, run_multi_pool() for several
pools in parallel, and run_backtest_cli() for CLI usage with date strings.
"""

import asyncio
import time
from datetime import datetime, timezone
from decimal import Decimal

from lphedge.backtest.engine import BacktestEngine
from lphedge.backtest.models import BacktestConfig, BacktestReport, MultiPoolResult
from lphedge.config import AppSettings
from lphedge.data.sources import PerpDataSource, PoolDataSource
from lphedge.exceptions import LpHedgeError
from lphedge.logging import bound_context, get_logger

logger = get_logger(__name__)


async def run_backtest(
    pool_id: str,
    date_range: tuple[int, int],
    initial_capital: Decimal,
    position_type: str,
    pool_source: PoolDataSource,
    perp_source: PerpDataSource,
    settings: AppSettings | None = None,
    **overrides: object,
) -> BacktestReport:
    """Run a single backtest for one pool.

    Args:
        pool_id: Pool address / subgraph id.
        date_range: (start_ms, end_ms).
        initial_capital: Capital deposited into the LP position.
        position_type: "full-range" or "N%".
        pool_source: Pool data collaborator.
        perp_source: Price / funding collaborator.
        settings: Application settings. Defaults to environment-loaded values.
        **overrides: Extra BacktestConfig fields (asset, tick_spacing).

    Returns:
        Complete BacktestReport.

    Raises:
        InvalidInput: Unusable inputs.
        CollaboratorFailure: Propagated from the data collaborators.
    """
    if settings is None:
        settings = AppSettings()

    start_ms, end_ms = date_range
    config = BacktestConfig(
        pool_id=pool_id,
        start_ms=start_ms,
        end_ms=end_ms,
        initial_capital=initial_capital,
        position_type=position_type,
        tick_spacing=settings.lp.tick_spacing,
    )
    config = config.with_overrides(
        **{k: v for k, v in overrides.items() if hasattr(config, k)}
    )

    start_time = time.monotonic()
    with bound_context(pool_id=pool_id, position_type=position_type):
        engine = BacktestEngine(
            config=config,
            pool_source=pool_source,
            perp_source=perp_source,
            backtest_settings=settings.backtest,
            hedge_settings=settings.hedge,
            lp_settings=settings.lp,
        )
        report = await engine.run()

        logger.info(
            "run_backtest_complete",
            days_processed=report.days_processed,
            total_return_pct=str(report.total_return_pct),
            elapsed_seconds=round(time.monotonic() - start_time, 2),
        )
    return report


async def run_multi_pool(
    pool_ids: list[str],
    base_config: BacktestConfig,
    pool_source: PoolDataSource,
    perp_source: PerpDataSource,
    settings: AppSettings | None = None,
) -> MultiPoolResult:
    """Run the same configuration across several pools in parallel.

    Each pool owns its own models. A failure on one pool is recorded as
    an error without aborting the others.

    Args:
        pool_ids: Pools to test.
        base_config: Template config (pool_id is overridden per pool).
        pool_source: Pool data collaborator.
        perp_source: Price / funding collaborator.
        settings: Application settings.

    Returns:
        MultiPoolResult with one entry per pool, in input order.
    """
    if settings is None:
        settings = AppSettings()

    async def _one(pool_id: str) -> tuple[str, BacktestReport | None, str | None]:
        try:
            report = await run_backtest(
                pool_id,
                (base_config.start_ms, base_config.end_ms),
                base_config.initial_capital,
                base_config.position_type,
                pool_source,
                perp_source,
                settings,
                asset=base_config.asset,
                tick_spacing=base_config.tick_spacing,
            )
            return pool_id, report, None
        except LpHedgeError as e:
            logger.warning("multi_pool_single_error", pool_id=pool_id, error=str(e))
            return pool_id, None, str(e)

    logger.info("run_multi_pool_starting", pools=pool_ids, total=len(pool_ids))
    start_time = time.monotonic()
    results = await asyncio.gather(*(_one(pool_id) for pool_id in pool_ids))
    logger.info(
        "run_multi_pool_complete",
        total=len(pool_ids),
        elapsed_seconds=round(time.monotonic() - start_time, 2),
    )
    return MultiPoolResult(base_config=base_config, results=list(results))


def parse_date_range(start_date: str, end_date: str) -> tuple[int, int]:
    """Convert "YYYY-MM-DD" strings (UTC) to a (start_ms, end_ms) range.

    Raises:
        ValueError: If date strings are invalid or the range is empty.
    """
    try:
        start_dt = datetime.strptime(start_date, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        end_dt = datetime.strptime(end_date, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise ValueError(f"Invalid date format. Expected YYYY-MM-DD. Error: {e}") from e

    start_ms = int(start_dt.timestamp() * 1000)
    end_ms = int(end_dt.timestamp() * 1000)
    if end_ms <= start_ms:
        raise ValueError(f"End date ({end_date}) must be after start date ({start_date})")
    return start_ms, end_ms


async def run_backtest_cli(
    pool_id: str,
    start_date: str,
    end_date: str,
    pool_source: PoolDataSource,
    perp_source: PerpDataSource,
    initial_capital: Decimal | None = None,
    position_type: str | None = None,
    settings: AppSettings | None = None,
) -> BacktestReport:
    """Convenience entry point for CLI usage with date strings.

    Missing capital and position type fall back to settings.

    Raises:
        ValueError: If date strings are invalid or date range is empty.
    """
    if settings is None:
        settings = AppSettings()

    date_range = parse_date_range(start_date, end_date)
    capital = initial_capital if initial_capital is not None else settings.backtest.default_initial_capital
    shape = position_type or settings.lp.position_type

    report = await run_backtest(
        pool_id,
        date_range,
        capital,
        shape,
        pool_source,
        perp_source,
        settings,
        asset=settings.strategy.asset,
    )

    logger.info(
        "backtest_cli_summary",
        pool_id=pool_id,
        date_range=f"{start_date} to {end_date}",
        initial_capital=str(capital),
        position_type=shape,
        total_return_pct=str(report.total_return_pct),
        lp_fees=str(report.lp_fees_total),
        funding_costs=str(report.funding_costs_total),
        net_fees=str(report.net_fees),
        time_in_range_pct=str(report.time_in_range_pct),
        sharpe_ratio=str(report.sharpe_ratio) if report.sharpe_ratio is not None else "N/A",
        max_drawdown_pct=str(report.max_drawdown_pct),
        apr_pct=str(report.apr_pct),
    )
    return report
