"""Backtest package.

Replays a liquidity position and its perpetual hedge over historical pool
days, joined with price and funding series.
"""

from lphedge.backtest.engine import BacktestEngine
from lphedge.backtest.export import day_table, export_report_tsv
from lphedge.backtest.models import BacktestConfig, BacktestReport, DayReport, MultiPoolResult
from lphedge.backtest.runner import parse_date_range, run_backtest, run_backtest_cli, run_multi_pool

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestReport",
    "DayReport",
    "MultiPoolResult",
    "day_table",
    "export_report_tsv",
    "parse_date_range",
    "run_backtest",
    "run_backtest_cli",
    "run_multi_pool",
]
