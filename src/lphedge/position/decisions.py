"""Decision helpers shared by the backtest models and the live loop.

Token-ratio rebalancing signal, liquidation-buffer test and leverage cut.
Keeping these in one place guarantees a live tick and a backtest day
reach the same decision from the same inputs.

CRITICAL: All monetary values use Decimal. Never use float for prices, amounts or ratios.
"""

from dataclasses import dataclass
from decimal import Decimal

from lphedge.models import AdjustmentDirection


@dataclass(frozen=True)
class TokenRatio:
    """Value split of a position between its two tokens."""

    token0_amount: Decimal
    token1_amount: Decimal
    token0_value: Decimal
    token1_value: Decimal
    token0_ratio: Decimal
    token1_ratio: Decimal


@dataclass(frozen=True)
class RebalanceDecision:
    """Outcome of a rebalancing check.

    Attributes:
        should_adjust: Whether the hedge (or position) needs action.
        adjustment_direction: Increase the short when token0 is overweight,
            decrease it when underweight.
        deviation: |token0_ratio - target|.
        token_ratio: The split the decision was made from.
        out_of_range: Whether the pool tick sits outside the position band.
    """

    should_adjust: bool
    adjustment_direction: AdjustmentDirection
    deviation: Decimal
    token_ratio: TokenRatio
    out_of_range: bool = False


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def token_ratio(token0_amount: Decimal, token1_amount: Decimal, price: Decimal) -> TokenRatio:
    """Split `token0_amount` (priced at `price`) and `token1_amount` by value."""
    token0_value = token0_amount * price
    total = token0_value + token1_amount
    if total <= 0:
        half = Decimal("0.5")
        return TokenRatio(token0_amount, token1_amount, token0_value, token1_amount, half, half)
    token0_ratio = token0_value / total
    return TokenRatio(
        token0_amount=token0_amount,
        token1_amount=token1_amount,
        token0_value=token0_value,
        token1_value=token1_amount,
        token0_ratio=token0_ratio,
        token1_ratio=Decimal("1") - token0_ratio,
    )


def ratio_decision(
    ratio: TokenRatio,
    target: Decimal,
    threshold: Decimal,
    out_of_range: bool = False,
) -> RebalanceDecision:
    """Compare a token split against the target ratio.

    A deviation exactly at the threshold does not trigger.
    """
    deviation = abs(ratio.token0_ratio - target)
    if ratio.token0_ratio > target + threshold:
        direction = AdjustmentDirection.INCREASE
    elif ratio.token0_ratio < target - threshold:
        direction = AdjustmentDirection.DECREASE
    else:
        direction = AdjustmentDirection.NONE
    return RebalanceDecision(
        should_adjust=deviation > threshold,
        adjustment_direction=direction,
        deviation=deviation,
        token_ratio=ratio,
        out_of_range=out_of_range,
    )


def exceeds_liquidation_buffer(
    leverage: Decimal, notional: Decimal, lp_value: Decimal, buffer: Decimal
) -> bool:
    """True when leveraged exposure relative to the LP value is above `buffer`."""
    exposure = leverage * notional
    if lp_value <= 0:
        return exposure > 0
    return exposure / lp_value > buffer


def cut_leverage(leverage: Decimal, factor: Decimal, min_leverage: Decimal) -> Decimal:
    return max(min_leverage, leverage * factor)
