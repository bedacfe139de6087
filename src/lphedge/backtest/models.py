"""Data models for the LP + hedge backtest.

Defines the run configuration, the per-day report row, the final report
and the multi-pool wrapper.

CRITICAL: All monetary values use Decimal. Never use float for prices, values or fees.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal


def _opt(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


@dataclass
class BacktestConfig:
    """Configuration for a single backtest run.

    Holds the pool, date range, capital and position shape.
    """

    pool_id: str
    start_ms: int  # start timestamp in milliseconds
    end_ms: int  # end timestamp in milliseconds

    initial_capital: Decimal = Decimal("1000")
    position_type: str = "full-range"  # "full-range" or "N%"
    asset: str = "BTC"  # hedged perp coin
    tick_spacing: int = 2000

    @property
    def start_day(self) -> int:
        """Start as unix seconds, the pool-day key."""
        return self.start_ms // 1000

    @property
    def end_day(self) -> int:
        return self.end_ms // 1000

    def with_overrides(self, **kwargs: object) -> BacktestConfig:
        """Return a new BacktestConfig with specified fields overridden.

        Args:
            **kwargs: Fields to override.

        Returns:
            New BacktestConfig with overridden values.
        """
        return replace(self, **kwargs)

    def to_dict(self) -> dict:
        return {
            "pool_id": self.pool_id,
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "initial_capital": str(self.initial_capital),
            "position_type": self.position_type,
            "asset": self.asset,
            "tick_spacing": self.tick_spacing,
        }


@dataclass
class DayReport:
    """One processed day of a backtest.

    Attributes:
        day: 1-based count of processed days.
        date: Pool day (unix seconds).
        pool_price: Pool token0 price.
        hedge_price: Perp price the hedge was marked at.
        lp_value: LP position value.
        daily_fees: Fees earned this day.
        cumulative_fees: Fees earned so far.
        in_range: Whether the pool tick was inside the band.
        token0_ratio: Value share of token0 in the position.
        deviation: |token0_ratio - target|.
        impermanent_loss_pct: IL at the hedge price, percent.
        hedge_notional: Hedge notional after all adjustments.
        hedge_leverage: Hedge leverage after all adjustments.
        funding_rate: Funding rate joined to the day.
        funding_flow: Funding booked this day (positive = paid).
        cumulative_funding: Funding booked so far.
        hedge_pnl: Cumulative hedge mark-to-market PnL.
        total_pnl: LP PnL + hedge PnL - funding.
        equity: Initial capital + total_pnl.
        running_apr: (fees - funding) / capital annualised, percent.
        hedge_adjustment: (old, new) notional when a ratio resize ran.
        risk_limit_triggered: Whether leverage was cut this day.
    """

    day: int
    date: int
    pool_price: Decimal
    hedge_price: Decimal
    lp_value: Decimal
    daily_fees: Decimal
    cumulative_fees: Decimal
    in_range: bool
    token0_ratio: Decimal
    deviation: Decimal
    impermanent_loss_pct: Decimal
    hedge_notional: Decimal
    hedge_leverage: Decimal
    funding_rate: Decimal
    funding_flow: Decimal
    cumulative_funding: Decimal
    hedge_pnl: Decimal
    total_pnl: Decimal
    equity: Decimal
    running_apr: Decimal
    hedge_adjustment: tuple[Decimal, Decimal] | None = None
    risk_limit_triggered: bool = False

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "date": self.date,
            "pool_price": str(self.pool_price),
            "hedge_price": str(self.hedge_price),
            "lp_value": str(self.lp_value),
            "daily_fees": str(self.daily_fees),
            "cumulative_fees": str(self.cumulative_fees),
            "in_range": self.in_range,
            "token0_ratio": str(self.token0_ratio),
            "deviation": str(self.deviation),
            "impermanent_loss_pct": str(self.impermanent_loss_pct),
            "hedge_notional": str(self.hedge_notional),
            "hedge_leverage": str(self.hedge_leverage),
            "funding_rate": str(self.funding_rate),
            "funding_flow": str(self.funding_flow),
            "cumulative_funding": str(self.cumulative_funding),
            "hedge_pnl": str(self.hedge_pnl),
            "total_pnl": str(self.total_pnl),
            "equity": str(self.equity),
            "running_apr": str(self.running_apr),
            "hedge_adjustment": (
                [str(self.hedge_adjustment[0]), str(self.hedge_adjustment[1])]
                if self.hedge_adjustment is not None
                else None
            ),
            "risk_limit_triggered": self.risk_limit_triggered,
        }


@dataclass
class BacktestReport:
    """Complete result of a backtest run.

    Percent fields are in percent (12.5 = 12.5%). Ratios that cannot be
    computed (Sharpe with fewer than two returns) are None.
    """

    config: BacktestConfig
    total_return_pct: Decimal
    lp_fees_total: Decimal
    funding_costs_total: Decimal
    net_fees: Decimal
    lp_pnl: Decimal
    hedge_pnl: Decimal
    time_in_range_pct: Decimal
    max_drawdown_pct: Decimal
    sharpe_ratio: Decimal | None
    alpha_vs_hold_pct: Decimal
    apr_pct: Decimal
    days_processed: int
    days_skipped: int
    hedge_adjustments: int
    risk_limit_events: int
    final_lp_value: Decimal
    final_hedge_notional: Decimal
    per_day: list[DayReport] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output.

        Returns:
            Dict with all fields; Decimal values as strings, None preserved.
        """
        return {
            "config": self.config.to_dict(),
            "total_return_pct": str(self.total_return_pct),
            "lp_fees_total": str(self.lp_fees_total),
            "funding_costs_total": str(self.funding_costs_total),
            "net_fees": str(self.net_fees),
            "lp_pnl": str(self.lp_pnl),
            "hedge_pnl": str(self.hedge_pnl),
            "time_in_range_pct": str(self.time_in_range_pct),
            "max_drawdown_pct": str(self.max_drawdown_pct),
            "sharpe_ratio": _opt(self.sharpe_ratio),
            "alpha_vs_hold_pct": str(self.alpha_vs_hold_pct),
            "apr_pct": str(self.apr_pct),
            "days_processed": self.days_processed,
            "days_skipped": self.days_skipped,
            "hedge_adjustments": self.hedge_adjustments,
            "risk_limit_events": self.risk_limit_events,
            "final_lp_value": str(self.final_lp_value),
            "final_hedge_notional": str(self.final_hedge_notional),
            "per_day": [d.to_dict() for d in self.per_day],
        }


@dataclass
class MultiPoolResult:
    """Results of the same backtest run across several pools.

    Attributes:
        results: (pool_id, report or None, error or None) per pool, in input order.
    """

    base_config: BacktestConfig
    results: list[tuple[str, BacktestReport | None, str | None]] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for _, report, _ in self.results if report is not None)

    @property
    def failed(self) -> int:
        return sum(1 for _, _, error in self.results if error is not None)

    def to_dict(self) -> dict:
        return {
            "base_config": self.base_config.to_dict(),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [
                {
                    "pool_id": pool_id,
                    "report": report.to_dict() if report is not None else None,
                    "error": error,
                }
                for pool_id, report, error in self.results
            ],
        }
