"""Tick ranges, active-liquidity distribution and daily fee share.

A position type is either full range ("full-range" / "full") or a
percentage band such as "10%". Bands are sized in ticks at roughly 92
ticks per percent of price (so 10% -> 920 ticks each side) and rounded
down to the pool's tick spacing.

CRITICAL: All monetary values use Decimal. Never use float for fees or liquidity.
"""

import re
from dataclasses import dataclass
from decimal import Decimal

from lphedge.exceptions import InvalidInput
from lphedge.models import PoolDaySnapshot, PoolPosition
from lphedge.pricing.liquidity import (
    MAX_TICK,
    MIN_TICK,
    capital_efficiency,
    liquidity_for_value,
    tick_to_price,
)

FULL_RANGE_TYPES = frozenset({"full-range", "full"})
TICKS_PER_PERCENT = 92

# Positions wider than this are counted as full range when classifying pool liquidity
FULL_RANGE_WIDTH_TICKS = 500_000

_PERCENT_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*%\s*$")


@dataclass(frozen=True)
class TickRange:
    """Half-open tick interval [lower, upper)."""

    lower: int
    upper: int
    full_range: bool = False

    @property
    def half_width(self) -> int:
        return (self.upper - self.lower) // 2

    def contains(self, tick: int) -> bool:
        return self.lower <= tick < self.upper

    def overlaps(self, lower: int, upper: int) -> bool:
        return not (upper <= self.lower or lower >= self.upper)


@dataclass(frozen=True)
class LiquidityDistribution:
    """Liquidity of pool positions that are active at one tick."""

    total_active: Decimal
    full_range: Decimal


def is_full_range_type(position_type: str) -> bool:
    return position_type.strip().lower() in FULL_RANGE_TYPES


def band_half_width(position_type: str, tick_spacing: int) -> int:
    """Half width in ticks of an "N%" band, at least one tick spacing.

    Raises:
        InvalidInput: If the type is not a positive percentage or spacing <= 0.
    """
    if tick_spacing <= 0:
        raise InvalidInput(f"tick_spacing must be positive, got {tick_spacing}")
    match = _PERCENT_RE.match(position_type)
    if match is None:
        raise InvalidInput(f"unsupported position type {position_type!r}")
    percent = Decimal(match.group(1))
    if percent <= 0:
        raise InvalidInput(f"band width must be positive, got {position_type!r}")

    raw_ticks = int(percent * TICKS_PER_PERCENT)
    return max(raw_ticks // tick_spacing * tick_spacing, tick_spacing)


def position_tick_range(position_type: str, tick_spacing: int, center_tick: int) -> TickRange:
    """Tick range for a position type centred on `center_tick`.

    Args:
        position_type: "full-range", "full" or "N%".
        tick_spacing: Pool tick spacing.
        center_tick: Tick the band is centred on (the entry tick).

    Returns:
        TickRange; full range covers [MIN_TICK, MAX_TICK).
    """
    if tick_spacing <= 0:
        raise InvalidInput(f"tick_spacing must be positive, got {tick_spacing}")
    if is_full_range_type(position_type):
        return TickRange(MIN_TICK, MAX_TICK, full_range=True)

    half = band_half_width(position_type, tick_spacing)
    return TickRange(center_tick - half, center_tick + half)


def active_liquidity_distribution(
    positions: list[PoolPosition], tick: int
) -> LiquidityDistribution:
    """Total liquidity active at `tick` and the part held by full-range positions."""
    total = Decimal("0")
    full = Decimal("0")
    for position in positions:
        if not position.tick_lower <= tick < position.tick_upper:
            continue
        total += position.liquidity
        if position.tick_upper - position.tick_lower > FULL_RANGE_WIDTH_TICKS:
            full += position.liquidity
    return LiquidityDistribution(total_active=total, full_range=full)


def competing_liquidity(positions: list[PoolPosition], tick: int, band: TickRange) -> Decimal:
    """Liquidity of positions active at `tick` that overlap our band."""
    return sum(
        (
            p.liquidity
            for p in positions
            if p.tick_lower <= tick < p.tick_upper and band.overlaps(p.tick_lower, p.tick_upper)
        ),
        Decimal("0"),
    )


def daily_fee_share(
    snapshot: PoolDaySnapshot,
    band: TickRange,
    lp_share: Decimal,
    pool_positions: list[PoolPosition],
) -> Decimal:
    """Fraction of the day's pool fee revenue earned by our position.

    Out of band earns nothing. Full range earns its TVL share, scaled by
    the full-range fraction of active liquidity when pool positions are
    known. A band without pool positions earns its TVL share boosted by
    capital efficiency. With pool positions known, our capital
    (lp_share * tvl) is converted to liquidity over the band at the pool
    tick and competes against the overlapping active positions:
    ours / (competing + ours).

    Pool liquidity and the converted capital share units only when the
    position liquidity is quoted at the pool's tick price.
    """
    if not band.contains(snapshot.tick):
        return Decimal("0")

    distribution = active_liquidity_distribution(pool_positions, snapshot.tick)

    if band.full_range:
        if distribution.total_active > 0:
            return lp_share * distribution.full_range / distribution.total_active
        return lp_share

    if distribution.total_active <= 0:
        return min(Decimal("1"), lp_share * capital_efficiency(band.half_width))

    competing = competing_liquidity(pool_positions, snapshot.tick, band)
    our_value = lp_share * snapshot.tvl_usd
    if competing <= 0 or our_value <= 0:
        return Decimal("0")
    ours = band_liquidity(our_value, snapshot.tick, band)
    return ours / (competing + ours)


def band_liquidity(value: Decimal, tick: int, band: TickRange) -> Decimal:
    """Liquidity worth `value` over the band at the price of `tick`."""
    return liquidity_for_value(
        value, tick_to_price(tick), tick_to_price(band.lower), tick_to_price(band.upper)
    )


def daily_fees(
    snapshot: PoolDaySnapshot,
    band: TickRange,
    lp_share: Decimal,
    pool_positions: list[PoolPosition],
    fee_tier: Decimal,
) -> Decimal:
    """Fees earned by our position on one pool day."""
    share = daily_fee_share(snapshot, band, lp_share, pool_positions)
    if share == 0:
        return Decimal("0")
    return snapshot.fee_revenue(fee_tier) * share
