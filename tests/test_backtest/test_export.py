"""Tests for the per-day TSV export."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from lphedge.backtest.engine import BacktestEngine
from lphedge.backtest.export import DAY_COLUMNS, day_table, export_filename, export_report_tsv
from lphedge.backtest.models import BacktestConfig
from lphedge.config import BacktestSettings

DAY0_MS = 1_704_067_200_000
DAY_MS = 86_400_000
NOW = datetime(2024, 3, 1, 12, 30, 5, tzinfo=timezone.utc)


@pytest.fixture
def report(make_snapshot, make_candle, make_funding):
    config = BacktestConfig(
        pool_id="0xPool",
        start_ms=DAY0_MS,
        end_ms=DAY0_MS + 2 * DAY_MS,
        initial_capital=Decimal("1000"),
        position_type="full-range",
    )
    engine = BacktestEngine(config, backtest_settings=BacktestSettings(aggregate_funding_to_8h=False))
    return engine.replay(
        [make_snapshot(day=d) for d in range(3)],
        [make_candle(day=d) for d in range(3)],
        [make_funding(day=d) for d in range(3)],
    )


class TestDayTable:
    def test_one_row_per_processed_day(self, report) -> None:
        table = day_table(report)
        assert len(table) == 3
        assert list(table.columns) == [col.name for col in DAY_COLUMNS]

    def test_first_row_values(self, report) -> None:
        row = day_table(report).iloc[0]
        assert row["timestamp"] == "2024-01-01"
        assert row["lp_value"] == "1000.00"
        assert row["total_portfolio_value"] == "1001.05"
        assert row["pnl"] == "1.05"
        assert row["return"] == "0.105000"
        assert row["lp_fees_earned"] == "1.000000"
        assert row["funding_fees_paid"] == "-0.050000"
        assert row["hedge_leverage"] == "1.00"
        assert row["in_range"] == "yes"
        assert row["rebalancing_actions"] == ""

    def test_empty_report_keeps_header(self, report) -> None:
        report.per_day = []
        table = day_table(report)
        assert table.empty
        assert list(table.columns)[0] == "timestamp"


class TestExportFile:
    def test_filename_cleans_parameters(self) -> None:
        name = export_filename("Aerodrome", "Full-Range", "10%", now=NOW)
        assert name == "aerodrome_fullrange_10pct_20240301_123005.tsv"

    def test_writes_tsv_under_protocol_dir(self, report, tmp_path) -> None:
        path = export_report_tsv(report, "aerodrome", tmp_path, now=NOW)

        assert path.parent == tmp_path / "aerodrome"
        assert path.name == "aerodrome_0xpool_fullrange_20240301_123005.tsv"
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0].split("\t") == [col.name for col in DAY_COLUMNS]
        assert len(lines) == 4
        assert lines[1].split("\t")[0] == "2024-01-01"
