"""Perpetual hedge model driven by daily price and funding.

Marks a perp hedge to market against its entry reference price, books
funding flows, and resizes notional/leverage from impermanent loss and
funding conditions, within the limits in HedgeSettings:

  - min_leverage <= leverage <= max_leverage
  - notional <= lp_value * max_hedge_ratio after every update

Funding sign convention: a short receives positive funding (flow is
-rate * exposure), a long pays it (+rate * exposure). The cumulative
funding cost is positive when the hedge has paid net funding.

CRITICAL: All monetary values use Decimal. Never use float for prices, notionals or rates.
"""

from dataclasses import dataclass
from decimal import Decimal

from lphedge.config import HedgeSettings
from lphedge.exceptions import InvalidInput, InvariantViolation
from lphedge.logging import get_logger
from lphedge.models import AdjustmentDirection, FundingRatePeriod, PositionDirection
from lphedge.position.decisions import clamp, cut_leverage, exceeds_liquidation_buffer

logger = get_logger(__name__)

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")

# Daily reaction to IL and funding conditions
_IL_TRIGGER_PCT = Decimal("1")
_LEVERAGE_UP = Decimal("1.1")
_LEVERAGE_DOWN = Decimal("0.9")
_EXPENSIVE_FUNDING_SHRINK = Decimal("0.95")
_NEGATIVE_FUNDING_GROW = Decimal("1.05")


@dataclass(frozen=True)
class HedgeDayResult:
    """What one update_daily call booked."""

    funding_flow: Decimal
    hedge_value: Decimal
    daily_pnl: Decimal


@dataclass(frozen=True)
class HedgeAdjustment:
    """Notional before and after a token-ratio resize."""

    old: Decimal
    new: Decimal


class HedgePositionModel:
    """Stateful model of one perpetual hedge.

    Args:
        initial_notional: Starting notional in USD (> 0).
        initial_reference_price: Price the hedge is marked against (> 0).
        direction: Long or short.
        initial_leverage: Clamped into [min_leverage, max_leverage].
        settings: Hedge limits and constants.

    Raises:
        InvalidInput: On non-positive notional or reference price.
    """

    def __init__(
        self,
        initial_notional: Decimal,
        initial_reference_price: Decimal,
        direction: PositionDirection | str = PositionDirection.SHORT,
        initial_leverage: Decimal = Decimal("1"),
        settings: HedgeSettings | None = None,
    ) -> None:
        if initial_notional <= 0:
            raise InvalidInput(f"initial notional must be positive, got {initial_notional}")
        if initial_reference_price <= 0:
            raise InvalidInput(
                f"initial reference price must be positive, got {initial_reference_price}"
            )

        self._settings = settings or HedgeSettings()
        self._direction = PositionDirection(direction)
        self._notional = initial_notional
        self._leverage = clamp(
            initial_leverage, self._settings.min_leverage, self._settings.max_leverage
        )
        self._initial_reference_price = initial_reference_price

        self._cumulative_funding_cost = _ZERO
        self._cumulative_hedge_pnl = _ZERO
        self._previous_hedge_value = _ZERO

    # ------------------------------------------------------------------
    # Daily update
    # ------------------------------------------------------------------

    def update_daily(
        self,
        current_price: Decimal,
        funding: FundingRatePeriod,
        lp_value: Decimal,
        impermanent_loss: Decimal,
    ) -> HedgeDayResult:
        """Book one day of funding and mark-to-market, then resize.

        Args:
            current_price: Hedge mark price for the day.
            funding: Funding period joined to the day.
            lp_value: Current LP position value (caps the notional).
            impermanent_loss: LP impermanent loss in percent.

        Returns:
            HedgeDayResult with the funding flow, mark value and PnL delta.

        Raises:
            InvalidInput: If current_price is not positive.
            InvariantViolation: If leverage or notional end up out of bounds.
        """
        if current_price <= 0:
            raise InvalidInput(f"current price must be positive, got {current_price}")

        exposure = self._notional * self._leverage
        rate = funding.funding_rate

        if self._direction == PositionDirection.SHORT:
            funding_flow = -rate * exposure
        else:
            funding_flow = rate * exposure
        self._cumulative_funding_cost += funding_flow

        price_change = (current_price - self._initial_reference_price) / self._initial_reference_price
        if self._direction == PositionDirection.SHORT:
            hedge_value = -exposure * price_change
        else:
            hedge_value = exposure * price_change

        daily_pnl = hedge_value - self._previous_hedge_value
        self._cumulative_hedge_pnl += daily_pnl
        self._previous_hedge_value = hedge_value

        self._adjust_position_based_on_conditions(impermanent_loss, rate, lp_value)
        self._notional = min(self._notional, self._cap(lp_value))
        self._check_invariants(lp_value)

        return HedgeDayResult(funding_flow=funding_flow, hedge_value=hedge_value, daily_pnl=daily_pnl)

    def _adjust_position_based_on_conditions(
        self, impermanent_loss: Decimal, funding_rate: Decimal, lp_value: Decimal
    ) -> None:
        cap = self._cap(lp_value)

        if abs(impermanent_loss) > _IL_TRIGGER_PCT:
            factor = min(abs(impermanent_loss) / _HUNDRED, self._settings.max_position_adjustment)
            if impermanent_loss < 0:
                self._notional *= _ONE + factor
                self._leverage = min(self._settings.max_leverage, self._leverage * _LEVERAGE_UP)
            else:
                self._notional *= _ONE - factor
                self._leverage = max(self._settings.min_leverage, self._leverage * _LEVERAGE_DOWN)
            self._notional = min(self._notional, cap)

        if funding_rate > self._settings.max_funding_rate:
            self._notional *= _EXPENSIVE_FUNDING_SHRINK
        elif funding_rate < 0:
            self._notional = min(self._notional * _NEGATIVE_FUNDING_GROW, cap)

    # ------------------------------------------------------------------
    # Token-ratio resize and risk limits
    # ------------------------------------------------------------------

    def adjust_hedge_size(
        self,
        direction: AdjustmentDirection | str,
        deviation: Decimal,
        lp_value: Decimal,
    ) -> HedgeAdjustment:
        """Resize notional after a token-ratio signal.

        The step is min(deviation, max_position_adjustment) of the current
        notional, up for INCREASE and down for DECREASE, capped at
        lp_value * max_hedge_ratio.
        """
        direction = AdjustmentDirection(direction)
        old = self._notional
        factor = min(abs(deviation), self._settings.max_position_adjustment)

        if direction == AdjustmentDirection.INCREASE:
            new = old * (_ONE + factor)
        elif direction == AdjustmentDirection.DECREASE:
            new = old * (_ONE - factor)
        else:
            new = old
        self._notional = min(new, self._cap(lp_value))
        self._check_invariants(lp_value)

        logger.debug(
            "hedge_resized",
            direction=direction.value,
            deviation=str(deviation),
            old=str(old),
            new=str(self._notional),
        )
        return HedgeAdjustment(old=old, new=self._notional)

    def check_risk_limits(self, lp_value: Decimal) -> bool:
        """True when leverage * notional / lp_value exceeds the liquidation buffer."""
        return exceeds_liquidation_buffer(
            self._leverage, self._notional, lp_value, self._settings.liquidation_buffer
        )

    def apply_risk_limit_adjustments(self) -> None:
        old = self._leverage
        self._leverage = cut_leverage(
            self._leverage, self._settings.risk_leverage_cut, self._settings.min_leverage
        )
        logger.info("hedge_leverage_cut", old=str(old), new=str(self._leverage))

    def _cap(self, lp_value: Decimal) -> Decimal:
        return max(_ZERO, lp_value * self._settings.max_hedge_ratio)

    def _check_invariants(self, lp_value: Decimal) -> None:
        if not self._settings.min_leverage <= self._leverage <= self._settings.max_leverage:
            raise InvariantViolation(f"leverage {self._leverage} outside bounds")
        if self._notional > self._cap(lp_value):
            raise InvariantViolation(
                f"notional {self._notional} above cap {self._cap(lp_value)}"
            )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def notional(self) -> Decimal:
        return self._notional

    @property
    def leverage(self) -> Decimal:
        return self._leverage

    @property
    def direction(self) -> PositionDirection:
        return self._direction

    @property
    def initial_reference_price(self) -> Decimal:
        return self._initial_reference_price

    @property
    def total_notional(self) -> Decimal:
        """Leveraged exposure: notional * leverage."""
        return self._notional * self._leverage

    @property
    def total_funding_costs(self) -> Decimal:
        return self._cumulative_funding_cost

    @property
    def total_hedge_pnl(self) -> Decimal:
        return self._cumulative_hedge_pnl

    @property
    def previous_hedge_value(self) -> Decimal:
        return self._previous_hedge_value
