"""Per-day TSV export of backtest reports.

Each processed day becomes one row, written to
exports/<protocol>/<protocol>_<params>_<YYYYMMDD_HHMMSS>.tsv. Columns and
their decimal places are configured in DAY_COLUMNS.

CRITICAL: All monetary values use Decimal. Values are quantized, never
converted to float, before they reach the table.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pandas as pd

from lphedge.backtest.models import BacktestReport, DayReport
from lphedge.logging import get_logger

logger = get_logger(__name__)

DEFAULT_EXPORTS_DIR = Path("exports")


@dataclass(frozen=True)
class ExportColumn:
    """One exported column: header, value getter and decimal places."""

    name: str
    value: Callable[[DayReport], object]
    places: int | None = None


def _return_pct(day: DayReport) -> Decimal:
    initial = day.equity - day.total_pnl
    if initial <= 0:
        return Decimal("0")
    return day.total_pnl / initial * 100


def _actions(day: DayReport) -> str:
    actions = []
    if day.hedge_adjustment is not None:
        actions.append("resize")
    if day.risk_limit_triggered:
        actions.append("cut_leverage")
    return ",".join(actions)


DAY_COLUMNS: tuple[ExportColumn, ...] = (
    ExportColumn("timestamp", lambda d: datetime.fromtimestamp(d.date, tz=timezone.utc).strftime("%Y-%m-%d")),
    ExportColumn("pool_price", lambda d: d.pool_price, 2),
    ExportColumn("hedge_price", lambda d: d.hedge_price, 2),
    ExportColumn("lp_value", lambda d: d.lp_value, 2),
    ExportColumn("total_portfolio_value", lambda d: d.equity, 2),
    ExportColumn("pnl", lambda d: d.total_pnl, 2),
    ExportColumn("return", _return_pct, 6),
    ExportColumn("apr", lambda d: d.running_apr, 6),
    ExportColumn("lp_fees_earned", lambda d: d.cumulative_fees, 6),
    ExportColumn("funding_fees_paid", lambda d: d.cumulative_funding, 6),
    ExportColumn("hedge_pnl", lambda d: d.hedge_pnl, 2),
    ExportColumn("impermanent_loss", lambda d: d.impermanent_loss_pct, 6),
    ExportColumn("token0_ratio", lambda d: d.token0_ratio, 6),
    ExportColumn("hedge_notional", lambda d: d.hedge_notional, 2),
    ExportColumn("hedge_leverage", lambda d: d.hedge_leverage, 2),
    ExportColumn("in_range", lambda d: "yes" if d.in_range else "no"),
    ExportColumn("rebalancing_actions", _actions),
)


def _format(value: object, places: int | None) -> str:
    if isinstance(value, Decimal) and places is not None:
        return str(value.quantize(Decimal(1).scaleb(-places)))
    return str(value)


def day_table(report: BacktestReport, columns: tuple[ExportColumn, ...] = DAY_COLUMNS) -> pd.DataFrame:
    """One row per processed day, every cell already formatted as text."""
    rows = [
        {col.name: _format(col.value(day), col.places) for col in columns}
        for day in report.per_day
    ]
    return pd.DataFrame(rows, columns=[col.name for col in columns])


def export_filename(protocol: str, *parameters: str, now: datetime | None = None) -> str:
    """<protocol>_<params>_<YYYYMMDD_HHMMSS>.tsv; params lowercased, '-' dropped, '%' -> 'pct'."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
    cleaned = [p.lower().replace("-", "").replace("%", "pct") for p in parameters]
    parts = [protocol.lower(), *cleaned, stamp]
    return "_".join(parts) + ".tsv"


def export_report_tsv(
    report: BacktestReport,
    protocol: str,
    exports_dir: Path = DEFAULT_EXPORTS_DIR,
    now: datetime | None = None,
) -> Path:
    """Write the report's per-day rows as TSV under exports_dir/<protocol>/.

    Returns:
        Path of the written file.
    """
    target_dir = exports_dir / protocol.lower()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / export_filename(
        protocol, report.config.pool_id, report.config.position_type, now=now
    )

    day_table(report).to_csv(path, sep="\t", index=False, lineterminator="\n")
    logger.info("report_exported", path=str(path), rows=len(report.per_day))
    return path
