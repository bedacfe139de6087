"""Shared data models for the LP hedge backtester and live loop.

CRITICAL: All monetary values use Decimal. Never use float for prices, amounts, fees or rates.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from lphedge.exceptions import InvalidInput


class PositionDirection(str, Enum):
    """Perpetual hedge direction."""

    LONG = "long"
    SHORT = "short"


class AdjustmentDirection(str, Enum):
    """Which way a rebalancing decision wants the hedge to move."""

    INCREASE = "increase"
    DECREASE = "decrease"
    NONE = "none"


@dataclass(frozen=True)
class PoolDaySnapshot:
    """One day of pool activity.

    Attributes:
        date: Day start as unix seconds.
        tvl_usd: Total value locked at day close.
        token0_price: Pool price of token0 (in token1 / USD terms).
        tick: Pool tick at day close.
        volume_usd: Traded volume over the day.
        fees_usd: Fees paid to LPs over the day (0 when the source omits it).
        token1_price: Inverse price, informational.
    """

    date: int
    tvl_usd: Decimal
    token0_price: Decimal
    tick: int
    volume_usd: Decimal
    fees_usd: Decimal = Decimal("0")
    token1_price: Decimal = Decimal("0")

    @property
    def timestamp_ms(self) -> int:
        return self.date * 1000

    def fee_revenue(self, fee_tier: Decimal) -> Decimal:
        """Pool-wide LP fee revenue for the day.

        Uses the reported fees when present, otherwise volume * fee tier.
        """
        if self.fees_usd > 0:
            return self.fees_usd
        return self.volume_usd * fee_tier


@dataclass(frozen=True)
class PriceCandle:
    """OHLCV candle for the hedged asset."""

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")


@dataclass(frozen=True)
class FundingRatePeriod:
    """A single funding settlement (hourly, or aggregated to 8h).

    funding_rate is fractional: 0.0008 = 0.08% for the period.
    """

    coin: str
    time_ms: int
    funding_rate: Decimal
    premium: Decimal = Decimal("0")


@dataclass(frozen=True)
class PoolPosition:
    """A competing liquidity position in the same pool."""

    position_id: str
    liquidity: Decimal
    tick_lower: int
    tick_upper: int
    owner: str = ""


@dataclass(frozen=True)
class LpPositionSnapshot:
    """Validated view of one live concentrated-liquidity position.

    Built at the collaborator boundary from subgraph or contract data;
    the core never reads positional tuples.
    """

    token_id: str
    owner: str
    pool: str
    tick_lower: int
    tick_upper: int
    current_tick: int
    liquidity: Decimal
    token0_symbol: str
    token1_symbol: str
    token0_amount: Decimal
    token1_amount: Decimal
    uncollected_fees_usd: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.tick_lower >= self.tick_upper:
            raise InvalidInput(
                f"tick_lower ({self.tick_lower}) must be below tick_upper ({self.tick_upper})"
            )
        if self.liquidity < 0:
            raise InvalidInput(f"liquidity must be non-negative, got {self.liquidity}")
        if self.token0_amount < 0 or self.token1_amount < 0:
            raise InvalidInput("token amounts must be non-negative")

    @property
    def in_range(self) -> bool:
        return self.tick_lower <= self.current_tick < self.tick_upper


@dataclass
class OrderResult:
    """Result of a hedge order (real or simulated)."""

    order_id: str
    asset: str
    is_long: bool
    size: Decimal
    price: Decimal
    leverage: Decimal
    timestamp: float = field(default_factory=time.time)
    is_simulated: bool = False


@dataclass(frozen=True)
class DayContext:
    """One pool day joined with its nearest price candle and funding period."""

    day_index: int
    snapshot: PoolDaySnapshot
    candle: PriceCandle | None
    funding: FundingRatePeriod

    @property
    def hedge_price(self) -> Decimal:
        """Mark price for the hedge: candle close, or the pool price without a candle."""
        if self.candle is not None:
            return self.candle.close
        return self.snapshot.token0_price
