"""Day-by-day replay of an LP position and its perpetual hedge.

Fetches pool snapshots, price candles, funding history and competing pool
positions concurrently, then walks the pool days strictly in order:

  1. JOIN: nearest candle and funding period (DayContext); a day without
     funding inside the window is skipped with no model update
  2. LP: update value, fees and range counters
  3. IL: impermanent loss at the hedge price
  4. HEDGE: funding, mark-to-market and condition-based resize
  5. RATIO: token-ratio signal, optional hedge resize
  6. RISK: liquidation buffer check, leverage cut
  7. ALERT: funding cost vs fees every N processed days
  8. REPORT: per-day row and equity point

The replay itself is synchronous and deterministic for fixed inputs.

CRITICAL: All monetary values use Decimal. Never use float for prices, values or fees.
"""

import asyncio
from decimal import Decimal

from lphedge.analytics.metrics import alpha_vs_hold_pct, max_drawdown_pct, sharpe_ratio
from lphedge.backtest.models import BacktestConfig, BacktestReport, DayReport
from lphedge.config import BacktestSettings, HedgeSettings, LpSettings
from lphedge.data.alignment import build_day_context
from lphedge.data.funding import aggregate_funding_to_8h
from lphedge.data.sources import PerpDataSource, PoolDataSource
from lphedge.exceptions import InvalidInput, MissingJoinData
from lphedge.logging import get_logger
from lphedge.models import (
    DayContext,
    FundingRatePeriod,
    PoolDaySnapshot,
    PoolPosition,
    PriceCandle,
)
from lphedge.position.hedge import HedgePositionModel
from lphedge.position.lp import LpPositionModel

logger = get_logger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_DAYS_PER_YEAR = Decimal("365")


class BacktestEngine:
    """Replays one pool over a date range with a perp hedge alongside.

    Args:
        config: Backtest configuration (pool, dates, capital, position type).
        pool_source: Pool snapshot / position collaborator. Only needed by run().
        perp_source: Price and funding collaborator. Only needed by run().
        backtest_settings: Join windows, aggregation and alert thresholds.
        hedge_settings: Hedge limits and initial sizing.
        lp_settings: Target ratio, rebalance threshold and fee tier.
    """

    def __init__(
        self,
        config: BacktestConfig,
        pool_source: PoolDataSource | None = None,
        perp_source: PerpDataSource | None = None,
        backtest_settings: BacktestSettings | None = None,
        hedge_settings: HedgeSettings | None = None,
        lp_settings: LpSettings | None = None,
    ) -> None:
        self._config = config
        self._pool_source = pool_source
        self._perp_source = perp_source
        self._settings = backtest_settings or BacktestSettings()
        self._hedge_settings = hedge_settings or HedgeSettings()
        self._lp_settings = lp_settings or LpSettings()

    async def run(self) -> BacktestReport:
        """Fetch all series concurrently, then replay them.

        Returns:
            BacktestReport for the configured pool and range.

        Raises:
            InvalidInput: If collaborators are missing or inputs are unusable.
            CollaboratorFailure: Propagated from any fetch.
        """
        if self._pool_source is None or self._perp_source is None:
            raise InvalidInput("run() needs both a pool source and a perp source")

        config = self._config
        snapshots, candles, funding, positions = await asyncio.gather(
            self._pool_source.fetch_pool_day_snapshots(config.pool_id, config.start_day, config.end_day),
            self._perp_source.fetch_price_history(
                config.asset, self._settings.price_interval, config.start_ms, config.end_ms
            ),
            self._perp_source.fetch_funding_history(config.asset, config.start_ms, config.end_ms),
            self._pool_source.fetch_pool_positions(config.pool_id),
        )

        logger.info(
            "backtest_data_loaded",
            snapshots=len(snapshots),
            candles=len(candles),
            funding_entries=len(funding),
            pool_positions=len(positions),
        )

        if self._settings.aggregate_funding_to_8h:
            funding = aggregate_funding_to_8h(funding)

        return self.replay(snapshots, candles, funding, positions)

    def replay(
        self,
        snapshots: list[PoolDaySnapshot],
        candles: list[PriceCandle],
        funding: list[FundingRatePeriod],
        pool_positions: list[PoolPosition] | None = None,
    ) -> BacktestReport:
        """Run the day loop over pre-fetched, time-ordered series.

        Args:
            snapshots: Pool days, ascending.
            candles: Hedge asset candles.
            funding: Funding periods (already aggregated if desired).
            pool_positions: Competing pool positions for fee weighting.

        Returns:
            Complete BacktestReport.

        Raises:
            InvalidInput: Empty snapshots or non-positive capital, before any state exists.
        """
        config = self._config
        capital = config.initial_capital
        if not snapshots:
            raise InvalidInput("snapshot series is empty")
        if capital <= 0:
            raise InvalidInput(f"initial capital must be positive, got {capital}")

        lp = LpPositionModel(
            initial_investment=capital,
            first_snapshot=snapshots[0],
            position_type=config.position_type,
            tick_spacing=config.tick_spacing,
            pool_positions=pool_positions,
            settings=self._lp_settings,
        )
        if candles and candles[0].close > 0:
            reference_price = candles[0].close
        else:
            reference_price = snapshots[0].token0_price
        hedge = HedgePositionModel(
            initial_notional=capital * self._hedge_settings.base_hedge_ratio,
            initial_reference_price=reference_price,
            direction=self._hedge_settings.direction,
            initial_leverage=self._hedge_settings.initial_leverage,
            settings=self._hedge_settings,
        )

        logger.info(
            "backtest_starting",
            pool_id=config.pool_id,
            position_type=config.position_type,
            initial_capital=str(capital),
            days=len(snapshots),
            lp_share=str(lp.share_percentage),
            tick_lower=lp.tick_range.lower,
            tick_upper=lp.tick_range.upper,
            hedge_notional=str(hedge.notional),
            reference_price=str(reference_price),
        )

        per_day: list[DayReport] = []
        equity: list[Decimal] = [capital]
        days_skipped = 0

        for index, snapshot in enumerate(snapshots):
            try:
                context = build_day_context(
                    index,
                    snapshot,
                    candles,
                    funding,
                    funding_window_hours=self._settings.funding_join_window_hours,
                    price_tolerance_hours=self._settings.price_join_tolerance_hours,
                )
            except MissingJoinData as e:
                days_skipped += 1
                logger.warning("backtest_day_skipped", date=snapshot.date, reason=str(e))
                continue

            report = self._simulate_day(context, lp, hedge, day=len(per_day) + 1)
            per_day.append(report)
            equity.append(report.equity)

        return self._summarize(lp, hedge, per_day, equity, days_skipped, reference_price)

    def _simulate_day(
        self,
        context: DayContext,
        lp: LpPositionModel,
        hedge: HedgePositionModel,
        day: int,
    ) -> DayReport:
        capital = self._config.initial_capital
        price = context.hedge_price

        daily_fees = lp.update_daily(context.snapshot)
        impermanent_loss = lp.calculate_impermanent_loss(price)
        lp_value = lp.value

        hedge_day = hedge.update_daily(price, context.funding, lp_value, impermanent_loss)

        decision = lp.should_adjust_hedge(price)
        adjustment: tuple[Decimal, Decimal] | None = None
        if decision.should_adjust:
            change = hedge.adjust_hedge_size(
                decision.adjustment_direction, decision.deviation, lp_value
            )
            adjustment = (change.old, change.new)
            logger.info(
                "hedge_ratio_adjusted",
                day=day,
                direction=decision.adjustment_direction.value,
                deviation=str(decision.deviation),
                old_notional=str(change.old),
                new_notional=str(change.new),
            )

        risk_triggered = hedge.check_risk_limits(lp_value)
        if risk_triggered:
            logger.warning(
                "liquidation_buffer_approached",
                day=day,
                leverage=str(hedge.leverage),
                notional=str(hedge.notional),
                lp_value=str(lp_value),
            )
            hedge.apply_risk_limit_adjustments()

        if day % self._settings.funding_alert_every_days == 0:
            self._check_funding_cost(day, lp.fees, hedge.total_funding_costs)

        funding_costs = hedge.total_funding_costs
        total_pnl = lp.total_pnl + hedge.total_hedge_pnl - funding_costs
        running_apr = (
            (lp.fees - funding_costs) / capital * (_DAYS_PER_YEAR / Decimal(day)) * _HUNDRED
        )
        ratio = decision.token_ratio

        logger.debug(
            "backtest_day",
            day=day,
            date=context.snapshot.date,
            hedge_price=str(price),
            lp_value=str(lp_value),
            daily_fees=str(daily_fees),
            impermanent_loss=str(impermanent_loss),
            hedge_notional=str(hedge.total_notional),
            funding_rate=str(context.funding.funding_rate),
            total_pnl=str(total_pnl),
        )

        return DayReport(
            day=day,
            date=context.snapshot.date,
            pool_price=context.snapshot.token0_price,
            hedge_price=price,
            lp_value=lp_value,
            daily_fees=daily_fees,
            cumulative_fees=lp.fees,
            in_range=lp.in_range,
            token0_ratio=ratio.token0_ratio,
            deviation=decision.deviation,
            impermanent_loss_pct=impermanent_loss,
            hedge_notional=hedge.notional,
            hedge_leverage=hedge.leverage,
            funding_rate=context.funding.funding_rate,
            funding_flow=hedge_day.funding_flow,
            cumulative_funding=funding_costs,
            hedge_pnl=hedge.total_hedge_pnl,
            total_pnl=total_pnl,
            equity=capital + total_pnl,
            running_apr=running_apr,
            hedge_adjustment=adjustment,
            risk_limit_triggered=risk_triggered,
        )

    def _check_funding_cost(self, day: int, fees: Decimal, funding_costs: Decimal) -> None:
        """Warn when funding paid is a large share of LP fees earned."""
        paid = abs(funding_costs)
        if fees <= 0:
            if paid > 0:
                logger.warning("high_funding_cost", day=day, funding=str(paid), fees="0")
            return
        ratio = paid / fees
        if ratio > self._settings.funding_alert_ratio:
            logger.warning(
                "high_funding_cost",
                day=day,
                funding=str(paid),
                fees=str(fees),
                ratio=str(ratio),
            )

    def _summarize(
        self,
        lp: LpPositionModel,
        hedge: HedgePositionModel,
        per_day: list[DayReport],
        equity: list[Decimal],
        days_skipped: int,
        reference_price: Decimal,
    ) -> BacktestReport:
        capital = self._config.initial_capital
        processed = len(per_day)

        funding_costs = hedge.total_funding_costs
        lp_pnl = lp.total_pnl
        hedge_pnl = hedge.total_hedge_pnl
        total_pnl = lp_pnl + hedge_pnl - funding_costs
        total_return = total_pnl / capital * _HUNDRED
        net_fees = lp.fees - funding_costs

        if processed:
            apr = net_fees / capital * (_DAYS_PER_YEAR / Decimal(processed)) * _HUNDRED
            last_price = per_day[-1].hedge_price
        else:
            apr = _ZERO
            last_price = reference_price

        report = BacktestReport(
            config=self._config,
            total_return_pct=total_return,
            lp_fees_total=lp.fees,
            funding_costs_total=funding_costs,
            net_fees=net_fees,
            lp_pnl=lp_pnl,
            hedge_pnl=hedge_pnl,
            time_in_range_pct=lp.time_in_range_percent,
            max_drawdown_pct=max_drawdown_pct(equity),
            sharpe_ratio=sharpe_ratio(equity),
            alpha_vs_hold_pct=alpha_vs_hold_pct(total_return, capital, lp.hold_value(last_price)),
            apr_pct=apr,
            days_processed=processed,
            days_skipped=days_skipped,
            hedge_adjustments=sum(1 for d in per_day if d.hedge_adjustment is not None),
            risk_limit_events=sum(1 for d in per_day if d.risk_limit_triggered),
            final_lp_value=lp.value,
            final_hedge_notional=hedge.notional,
            per_day=per_day,
        )

        logger.info(
            "backtest_complete",
            pool_id=self._config.pool_id,
            days_processed=processed,
            days_skipped=days_skipped,
            total_return_pct=str(report.total_return_pct),
            lp_fees=str(report.lp_fees_total),
            funding_costs=str(report.funding_costs_total),
            hedge_pnl=str(report.hedge_pnl),
            time_in_range_pct=str(report.time_in_range_pct),
            apr_pct=str(report.apr_pct),
        )
        return report
