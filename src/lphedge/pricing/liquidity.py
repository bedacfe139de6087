"""Concentrated-liquidity price math.

Closed-form impermanent loss, tick/price conversion and Uniswap-v3 style
token amounts for a liquidity band. Pure functions, no state.

CRITICAL: All monetary values use Decimal. Never use float for prices or amounts.
"""

from decimal import Decimal

from lphedge.exceptions import InvalidInput

TICK_BASE = Decimal("1.0001")
MIN_TICK = -887272
MAX_TICK = 887272

_ONE = Decimal("1")
_TWO = Decimal("2")
_HUNDRED = Decimal("100")


def impermanent_loss_pct(current_price: Decimal, initial_price: Decimal) -> Decimal:
    """Impermanent loss of a 50/50 constant-product position versus holding.

    IL = (2 * sqrt(r) / (1 + r) - 1) * 100 with r = current / initial.
    Zero at r = 1, negative for every other r, tends to -100 at both ends.

    Args:
        current_price: Current token0 price.
        initial_price: Token0 price at entry.

    Returns:
        IL in percent (e.g. Decimal("-0.414") for r = 1.2).

    Raises:
        InvalidInput: If either price is not positive.
    """
    if current_price <= 0 or initial_price <= 0:
        raise InvalidInput(
            f"prices must be positive (current={current_price}, initial={initial_price})"
        )
    ratio = current_price / initial_price
    return (_TWO * ratio.sqrt() / (_ONE + ratio) - _ONE) * _HUNDRED


def tick_to_price(tick: int) -> Decimal:
    """Price at a tick: 1.0001 ** tick."""
    return TICK_BASE**tick


def capital_efficiency(half_width_ticks: int) -> Decimal:
    """Liquidity multiplier of a band of +/- half_width ticks over full range.

    1 / (1 - 1.0001 ** (-h / 2)). A 10% band (h=920) is roughly 22.2x.
    """
    if half_width_ticks <= 0:
        raise InvalidInput(f"half width must be positive, got {half_width_ticks}")
    return _ONE / (_ONE - TICK_BASE ** (Decimal(-half_width_ticks) / _TWO))


def concentrated_amounts(
    liquidity: Decimal,
    price: Decimal,
    price_lower: Decimal,
    price_upper: Decimal,
) -> tuple[Decimal, Decimal]:
    """Token amounts held by `liquidity` over [price_lower, price_upper] at `price`.

    Below the band the position is all token0, above it all token1.

    Returns:
        (token0_amount, token1_amount)
    """
    sqrt_p = price.sqrt()
    sqrt_a = price_lower.sqrt()
    sqrt_b = price_upper.sqrt()

    if price <= price_lower:
        return liquidity * (_ONE / sqrt_a - _ONE / sqrt_b), Decimal("0")
    if price >= price_upper:
        return Decimal("0"), liquidity * (sqrt_b - sqrt_a)
    return (
        liquidity * (_ONE / sqrt_p - _ONE / sqrt_b),
        liquidity * (sqrt_p - sqrt_a),
    )


def liquidity_for_value(
    value: Decimal,
    price: Decimal,
    price_lower: Decimal,
    price_upper: Decimal,
) -> Decimal:
    """Liquidity that is worth `value` (in token1 terms) at `price`."""
    if value <= 0 or price <= 0:
        raise InvalidInput(f"value and price must be positive (value={value}, price={price})")
    amount0, amount1 = concentrated_amounts(_ONE, price, price_lower, price_upper)
    unit_value = amount0 * price + amount1
    if unit_value == 0:
        raise InvalidInput("band has zero width")
    return value / unit_value
