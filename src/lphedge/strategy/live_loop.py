"""One tick of the live LP + hedge strategy.

Each tick reads the live position, mark price and funding rate, then:
  1. EXIT: out of range for longer than the configured window -> remove
     liquidity, close the hedge, reset state
  2. RATIO: token split vs target, using the same decision helpers as
     the backtest
  3. HEDGE: size a short proportional to token0 held, pick leverage from
     funding and deviation, resubmit when the target moved
  4. RISK: cut leverage when exposure breaches the liquidation buffer,
     folded into the same close/open pair as a resubmit
  5. FEES: collect once uncollected fees pass the threshold

State is passed in and returned; the loop holds no mutable strategy fields.
Collaborator failures propagate to the caller.

CRITICAL: All monetary values use Decimal. Never use float for prices, sizes or leverage.
"""

from decimal import Decimal

from lphedge.config import HedgeSettings, LiveSettings, LpSettings
from lphedge.data.sources import HedgeTrader, LiquidityManager, PerpDataSource, PoolDataSource
from lphedge.logging import get_logger
from lphedge.models import AdjustmentDirection, LpPositionSnapshot
from lphedge.position.decisions import (
    RebalanceDecision,
    clamp,
    cut_leverage,
    exceeds_liquidation_buffer,
    ratio_decision,
    token_ratio,
)
from lphedge.pricing.liquidity import impermanent_loss_pct
from lphedge.strategy.state import ActionKind, StrategyState, TickResult

logger = get_logger(__name__)

_ONE = Decimal("1")
_TWO = Decimal("2")
_MAX_RATIO_STEP = Decimal("0.5")
_EXPENSIVE_FUNDING_LEVERAGE = Decimal("0.8")
_NEGATIVE_FUNDING_LEVERAGE = Decimal("1.2")
_MS_PER_HOUR = 60 * 60 * 1000


class LiveStrategyLoop:
    """Stateless evaluator for one strategy tick.

    Args:
        pool_source: Live position lookups.
        perp_source: Mark price and current funding.
        trader: Hedge order submission.
        liquidity: Liquidity removal and fee collection.
        live_settings: Owner, pool, asset and loop thresholds.
        hedge_settings: Leverage and hedge-ratio limits.
        lp_settings: Target ratio and rebalance threshold.
    """

    def __init__(
        self,
        pool_source: PoolDataSource,
        perp_source: PerpDataSource,
        trader: HedgeTrader,
        liquidity: LiquidityManager,
        live_settings: LiveSettings | None = None,
        hedge_settings: HedgeSettings | None = None,
        lp_settings: LpSettings | None = None,
    ) -> None:
        self._pool_source = pool_source
        self._perp_source = perp_source
        self._trader = trader
        self._liquidity = liquidity
        self._settings = live_settings or LiveSettings()
        self._hedge = hedge_settings or HedgeSettings()
        self._lp = lp_settings or LpSettings()
        self._is_long = self._hedge.direction == "long"

    async def tick(self, state: StrategyState, now_ms: int) -> TickResult:
        """Evaluate one polling step.

        Args:
            state: State returned by the previous tick.
            now_ms: Current time in milliseconds.

        Returns:
            TickResult with the next state and the actions performed.
        """
        settings = self._settings
        position = await self._pool_source.fetch_live_position(
            settings.owner_address, settings.pool_address
        )
        if position is None:
            logger.info("no_live_position", owner=settings.owner_address, pool=settings.pool_address)
            return TickResult(state=state.evolve(last_tick_ms=now_ms))

        price = await self._perp_source.fetch_mark_price(settings.asset)
        initial_price = state.initial_price if state.initial_price is not None else price

        if not position.in_range:
            since = state.out_of_range_since_ms if state.out_of_range_since_ms is not None else now_ms
            if now_ms - since > settings.out_of_range_exit_hours * _MS_PER_HOUR:
                return await self._exit(position, state, now_ms, since)
            state = state.evolve(out_of_range_since_ms=since)
        else:
            state = state.evolve(out_of_range_since_ms=None)

        funding_rate = await self._perp_source.fetch_current_funding(settings.asset)

        ratio = token_ratio(position.token0_amount, position.token1_amount, price)
        decision = ratio_decision(
            ratio,
            self._lp.target_token0_ratio,
            self._lp.rebalance_threshold,
            out_of_range=not position.in_range,
        )
        position_value = ratio.token0_value + ratio.token1_value

        logger.info(
            "live_tick",
            price=str(price),
            in_range=position.in_range,
            token0_ratio=str(ratio.token0_ratio),
            deviation=str(decision.deviation),
            position_value=str(position_value),
            impermanent_loss=str(impermanent_loss_pct(price, initial_price)),
            funding_rate=str(funding_rate),
            hedge_notional=str(state.hedge_notional),
            hedge_leverage=str(state.hedge_leverage),
        )

        actions: list[ActionKind] = []
        state = state.evolve(initial_price=initial_price)

        if settings.hedge_enabled:
            state = await self._rebalance_hedge(
                state, position, decision, price, funding_rate, position_value, actions
            )

        if position.uncollected_fees_usd > settings.fee_collection_threshold_usd:
            collected = await self._liquidity.collect_fees(position)
            actions.append(ActionKind.COLLECT_FEES)
            state = state.evolve(fees_collected=state.fees_collected + collected)
            logger.info("fees_collected", amount=str(collected))

        return TickResult(
            state=state.evolve(last_tick_ms=now_ms),
            actions=tuple(actions),
            decision=decision,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _exit(
        self, position: LpPositionSnapshot, state: StrategyState, now_ms: int, since_ms: int
    ) -> TickResult:
        logger.warning(
            "out_of_range_exit",
            out_of_range_hours=round((now_ms - since_ms) / _MS_PER_HOUR, 2),
            token_id=position.token_id,
        )
        await self._liquidity.remove_liquidity(position)
        await self._trader.close_hedge(self._settings.asset)
        return TickResult(
            state=state.after_exit(now_ms),
            actions=(ActionKind.REMOVE_LIQUIDITY, ActionKind.CLOSE_HEDGE),
        )

    def target_hedge_size(self, token0_amount: Decimal, decision: RebalanceDecision) -> Decimal:
        """Hedge size in token0 units.

        Starts from the token0 held, moves up (token0 overweight) or down
        by min(2 * deviation, 0.5), then clamps to
        [min_hedge_ratio, max_hedge_ratio] of the token0 held.
        """
        size = token0_amount
        if decision.should_adjust:
            step = min(decision.deviation * _TWO, _MAX_RATIO_STEP)
            if decision.adjustment_direction == AdjustmentDirection.INCREASE:
                size = token0_amount * (_ONE + step)
            elif decision.adjustment_direction == AdjustmentDirection.DECREASE:
                size = token0_amount * (_ONE - step)
        return clamp(
            size,
            token0_amount * self._hedge.min_hedge_ratio,
            token0_amount * self._hedge.max_hedge_ratio,
        )

    def target_leverage(self, funding_rate: Decimal, decision: RebalanceDecision) -> Decimal:
        """Leverage from 1x: lower on expensive funding, higher when paid or deviated."""
        leverage = _ONE
        if funding_rate > self._hedge.max_funding_rate:
            leverage *= _EXPENSIVE_FUNDING_LEVERAGE
        elif funding_rate < 0:
            leverage *= _NEGATIVE_FUNDING_LEVERAGE
        if decision.deviation > self._lp.rebalance_threshold:
            leverage *= _ONE + decision.deviation
        return clamp(leverage, self._hedge.min_leverage, self._hedge.max_leverage)

    def _needs_resubmit(self, state: StrategyState, target_value: Decimal) -> bool:
        if state.hedge_notional <= 0:
            return True
        if target_value <= 0:
            return False
        drift = abs(state.hedge_notional - target_value) / target_value
        return drift > self._settings.hedge_size_tolerance

    async def _rebalance_hedge(
        self,
        state: StrategyState,
        position: LpPositionSnapshot,
        decision: RebalanceDecision,
        price: Decimal,
        funding_rate: Decimal,
        position_value: Decimal,
        actions: list[ActionKind],
    ) -> StrategyState:
        """Place at most one close/open pair per tick.

        A resubmit picks its leverage from funding and deviation, cut up
        front when the new exposure would breach the liquidation buffer.
        Without a resubmit, an open hedge that breaches the buffer is
        reopened at the cut leverage with its current notional.
        """
        target_value = self.target_hedge_size(position.token0_amount, decision) * price
        if target_value <= 0:
            return state

        if self._needs_resubmit(state, target_value):
            margin_usage = target_value / position_value if position_value > 0 else Decimal("Infinity")
            if margin_usage > self._settings.max_margin_usage:
                logger.warning(
                    "hedge_skipped_margin_usage",
                    margin_usage=str(margin_usage),
                    limit=str(self._settings.max_margin_usage),
                )
                return state

            leverage = self.target_leverage(funding_rate, decision)
            cut = exceeds_liquidation_buffer(
                leverage, target_value, position_value, self._hedge.liquidation_buffer
            )
            if cut:
                leverage = self._cut(leverage)
            state = await self._reopen(state, target_value, leverage, actions, cut)
            logger.info(
                "hedge_resubmitted",
                target_value=str(target_value),
                leverage=str(leverage),
                margin_usage=str(margin_usage),
            )
            return state

        if state.hedge_notional > 0 and exceeds_liquidation_buffer(
            state.hedge_leverage, state.hedge_notional, position_value, self._hedge.liquidation_buffer
        ):
            leverage = self._cut(state.hedge_leverage)
            if leverage < state.hedge_leverage:
                state = await self._reopen(state, state.hedge_notional, leverage, actions, True)
        return state

    def _cut(self, leverage: Decimal) -> Decimal:
        cut = cut_leverage(leverage, self._hedge.risk_leverage_cut, self._hedge.min_leverage)
        logger.warning(
            "liquidation_buffer_approached",
            old_leverage=str(leverage),
            new_leverage=str(cut),
        )
        return cut

    async def _reopen(
        self,
        state: StrategyState,
        notional: Decimal,
        leverage: Decimal,
        actions: list[ActionKind],
        cut: bool,
    ) -> StrategyState:
        asset = self._settings.asset
        await self._trader.close_hedge(asset)
        actions.append(ActionKind.CLOSE_HEDGE)
        await self._trader.submit_hedge_order(asset, self._is_long, leverage, notional / leverage)
        actions.append(ActionKind.OPEN_HEDGE)
        if cut:
            actions.append(ActionKind.CUT_LEVERAGE)
        return state.evolve(hedge_leverage=leverage, hedge_notional=notional)
