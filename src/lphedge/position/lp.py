"""Liquidity position model driven by daily pool snapshots.

Tracks one concentrated (or full-range) liquidity position: its claim on
pool TVL, fee accrual, time in range and the token split that drives the
hedge rebalancing signal.

The claim on the pool is fixed at entry: value = day TVL * (investment /
first-day TVL). Fee share per day comes from ranges.daily_fees.

CRITICAL: All monetary values use Decimal. Never use float for prices, values or fees.
"""

from dataclasses import replace
from decimal import Decimal

from lphedge.config import LpSettings
from lphedge.exceptions import InvalidInput
from lphedge.logging import get_logger
from lphedge.models import PoolDaySnapshot, PoolPosition
from lphedge.position.decisions import (
    RebalanceDecision,
    TokenRatio,
    ratio_decision,
    token_ratio,
)
from lphedge.position.ranges import TickRange, daily_fees, position_tick_range
from lphedge.pricing.liquidity import (
    TICK_BASE,
    concentrated_amounts,
    impermanent_loss_pct,
    liquidity_for_value,
)

logger = get_logger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_DAYS_PER_YEAR = Decimal("365")


class LpPositionModel:
    """Stateful model of one liquidity position over a run of pool days.

    Args:
        initial_investment: Capital deposited at entry (> 0).
        first_snapshot: Pool day the position is opened on.
        position_type: "full-range", "full" or a band such as "10%".
        tick_spacing: Pool tick spacing (> 0).
        pool_positions: Competing pool positions, for fee weighting.
        settings: Target ratio, rebalance threshold and fee tier.

    Raises:
        InvalidInput: On non-positive investment, first-day TVL, entry
            price or tick spacing, or an unsupported position type.
    """

    def __init__(
        self,
        initial_investment: Decimal,
        first_snapshot: PoolDaySnapshot,
        position_type: str = "full-range",
        tick_spacing: int = 2000,
        pool_positions: list[PoolPosition] | None = None,
        settings: LpSettings | None = None,
    ) -> None:
        if initial_investment <= 0:
            raise InvalidInput(f"initial investment must be positive, got {initial_investment}")
        if first_snapshot.tvl_usd <= 0:
            raise InvalidInput(f"first snapshot TVL must be positive, got {first_snapshot.tvl_usd}")
        if first_snapshot.token0_price <= 0:
            raise InvalidInput(
                f"first snapshot token0 price must be positive, got {first_snapshot.token0_price}"
            )

        self._settings = settings or LpSettings()
        self._band: TickRange = position_tick_range(position_type, tick_spacing, first_snapshot.tick)
        self._position_type = position_type
        self._tick_spacing = tick_spacing
        self._pool_positions = list(pool_positions or [])

        self._initial_investment = initial_investment
        self._lp_share = initial_investment / first_snapshot.tvl_usd
        self._initial_token0_price = first_snapshot.token0_price

        self._current_value = initial_investment
        self._cumulative_fees = _ZERO
        self._days_in_range = 0
        self._total_days = 0
        self._in_range = self._band.contains(first_snapshot.tick)

        # Entry split: 50/50 by value at the entry price
        half = initial_investment / 2
        self._hold_token0 = half / self._initial_token0_price
        self._hold_token1 = half

        if self._band.full_range:
            self._band_liquidity = _ZERO
            self._price_lower = _ZERO
            self._price_upper = _ZERO
        else:
            width = TICK_BASE**self._band.half_width
            self._price_lower = self._initial_token0_price / width
            self._price_upper = self._initial_token0_price * width
            self._band_liquidity = liquidity_for_value(
                initial_investment,
                self._initial_token0_price,
                self._price_lower,
                self._price_upper,
            )

    # ------------------------------------------------------------------
    # Daily update
    # ------------------------------------------------------------------

    def update_daily(self, snapshot: PoolDaySnapshot) -> Decimal:
        """Advance the position by one pool day.

        Args:
            snapshot: The day's pool snapshot.

        Returns:
            Fees earned on this day.
        """
        self._total_days += 1
        self._current_value = snapshot.tvl_usd * self._lp_share
        self._in_range = self._band.contains(snapshot.tick)

        fees = daily_fees(
            snapshot,
            self._band,
            self._lp_share,
            self._pool_positions,
            self._settings.fee_tier,
        )
        self._cumulative_fees += fees

        if self._in_range:
            self._days_in_range += 1

        logger.debug(
            "lp_day_updated",
            day=self._total_days,
            tick=snapshot.tick,
            in_range=self._in_range,
            value=str(self._current_value),
            fees=str(fees),
        )
        return fees

    # ------------------------------------------------------------------
    # Price-dependent views
    # ------------------------------------------------------------------

    def calculate_impermanent_loss(self, current_token0_price: Decimal) -> Decimal:
        """IL in percent against the entry token0 price."""
        return impermanent_loss_pct(current_token0_price, self._initial_token0_price)

    def calculate_token_ratio(self, price: Decimal) -> TokenRatio:
        """Token split of the position at `price`.

        Full range follows the constant-product curve seeded 50/50 at
        entry, so its value split stays even. A band holds v3 amounts
        for its entry liquidity.
        """
        if price <= 0:
            raise InvalidInput(f"price must be positive, got {price}")

        if self._band.full_range:
            k = self._hold_token0 * self._hold_token1
            amount0 = (k / price).sqrt()
            amount1 = (k * price).sqrt()
        else:
            amount0, amount1 = concentrated_amounts(
                self._band_liquidity, price, self._price_lower, self._price_upper
            )
        return token_ratio(amount0, amount1, price)

    def should_adjust_hedge(self, current_price: Decimal) -> RebalanceDecision:
        """Token-ratio signal for resizing the hedge at `current_price`."""
        return ratio_decision(
            self.calculate_token_ratio(current_price),
            self._settings.target_token0_ratio,
            self._settings.rebalance_threshold,
            out_of_range=not self._in_range,
        )

    def should_rebalance(self, snapshot: PoolDaySnapshot) -> RebalanceDecision:
        """Whether the position itself needs attention on this pool day.

        True when the pool tick left the band, or the token split at the
        pool price deviates from target beyond the threshold.
        """
        out_of_range = not self._band.contains(snapshot.tick)
        decision = ratio_decision(
            self.calculate_token_ratio(snapshot.token0_price),
            self._settings.target_token0_ratio,
            self._settings.rebalance_threshold,
            out_of_range=out_of_range,
        )
        if out_of_range and not decision.should_adjust:
            return replace(decision, should_adjust=True)
        return decision

    def hold_value(self, price: Decimal) -> Decimal:
        """Value of simply holding the entry 50/50 split at `price`."""
        return self._hold_token0 * price + self._hold_token1

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def value(self) -> Decimal:
        return self._current_value

    @property
    def fees(self) -> Decimal:
        return self._cumulative_fees

    @property
    def initial_value(self) -> Decimal:
        return self._initial_investment

    @property
    def initial_token0_price(self) -> Decimal:
        return self._initial_token0_price

    @property
    def share_percentage(self) -> Decimal:
        """Fraction of pool TVL claimed at entry (0.01 = 1%)."""
        return self._lp_share

    @property
    def tick_range(self) -> TickRange:
        return self._band

    @property
    def in_range(self) -> bool:
        return self._in_range

    @property
    def days_elapsed(self) -> int:
        return self._total_days

    @property
    def days_in_range(self) -> int:
        return self._days_in_range

    @property
    def total_pnl(self) -> Decimal:
        return self._current_value - self._initial_investment + self._cumulative_fees

    @property
    def total_return(self) -> Decimal:
        """Percent return including fees."""
        return self.total_pnl / self._initial_investment * _HUNDRED

    @property
    def time_in_range_percent(self) -> Decimal:
        if self._total_days == 0:
            return _ZERO
        return Decimal(self._days_in_range) / Decimal(self._total_days) * _HUNDRED

    @property
    def running_apr(self) -> Decimal:
        """Fee APR in percent, annualised over the days elapsed."""
        if self._total_days == 0:
            return _ZERO
        return (
            self._cumulative_fees
            / self._initial_investment
            * (_DAYS_PER_YEAR / Decimal(self._total_days))
            * _HUNDRED
        )
