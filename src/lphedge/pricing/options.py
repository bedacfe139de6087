"""Black-Scholes pricing, greeks and historical volatility.

Analytic option math used for protective-put and covered-call overlays on
the LP/hedge book. Inputs and outputs are float: the formulas need erf,
log and exp, and no position state is ever derived from them.
"""

import math
from dataclasses import dataclass
from enum import Enum

from lphedge.exceptions import InvalidInput

_MS_PER_DAY = 1000 * 60 * 60 * 24


class OptionType(str, Enum):
    CALL = "call"
    PUT = "put"


@dataclass(frozen=True)
class OptionParams:
    """Inputs to the Black-Scholes model.

    Attributes:
        spot_price: Underlying price.
        strike_price: Option strike.
        time_to_expiry: Years until expiry (0 or less = expired).
        risk_free_rate: Continuously compounded annual rate.
        volatility: Annualised volatility (0.6 = 60%).
        option_type: Call or put.
    """

    spot_price: float
    strike_price: float
    time_to_expiry: float
    risk_free_rate: float
    volatility: float
    option_type: OptionType


def _norm_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def _norm_pdf(x: float) -> float:
    return math.exp(-0.5 * x * x) / math.sqrt(2.0 * math.pi)


def _d1(p: OptionParams) -> float:
    return (
        math.log(p.spot_price / p.strike_price)
        + (p.risk_free_rate + 0.5 * p.volatility**2) * p.time_to_expiry
    ) / (p.volatility * math.sqrt(p.time_to_expiry))


def _d2(p: OptionParams) -> float:
    return _d1(p) - p.volatility * math.sqrt(p.time_to_expiry)


def intrinsic_value(spot_price: float, strike_price: float, option_type: OptionType) -> float:
    if option_type == OptionType.CALL:
        return max(0.0, spot_price - strike_price)
    return max(0.0, strike_price - spot_price)


def black_scholes_price(p: OptionParams) -> float:
    """Option premium; intrinsic value once expired."""
    if p.time_to_expiry <= 0:
        return intrinsic_value(p.spot_price, p.strike_price, p.option_type)

    d1, d2 = _d1(p), _d2(p)
    discount = math.exp(-p.risk_free_rate * p.time_to_expiry)
    if p.option_type == OptionType.CALL:
        return p.spot_price * _norm_cdf(d1) - p.strike_price * discount * _norm_cdf(d2)
    return p.strike_price * discount * _norm_cdf(-d2) - p.spot_price * _norm_cdf(-d1)


def time_value(p: OptionParams) -> float:
    return max(0.0, black_scholes_price(p) - intrinsic_value(p.spot_price, p.strike_price, p.option_type))


def delta(p: OptionParams) -> float:
    """Option delta. At expiry a step function of moneyness."""
    if p.time_to_expiry <= 0:
        if p.option_type == OptionType.CALL:
            return 1.0 if p.spot_price > p.strike_price else 0.0
        return -1.0 if p.spot_price < p.strike_price else 0.0

    d1 = _d1(p)
    if p.option_type == OptionType.CALL:
        return _norm_cdf(d1)
    return _norm_cdf(d1) - 1.0


def gamma(p: OptionParams) -> float:
    if p.time_to_expiry <= 0:
        return 0.0
    return _norm_pdf(_d1(p)) / (p.spot_price * p.volatility * math.sqrt(p.time_to_expiry))


def theta(p: OptionParams) -> float:
    """Time decay per calendar day."""
    if p.time_to_expiry <= 0:
        return 0.0

    d1, d2 = _d1(p), _d2(p)
    decay = -(p.spot_price * _norm_pdf(d1) * p.volatility) / (2 * math.sqrt(p.time_to_expiry))
    carry = p.risk_free_rate * p.strike_price * math.exp(-p.risk_free_rate * p.time_to_expiry)
    if p.option_type == OptionType.CALL:
        return (decay - carry * _norm_cdf(d2)) / 365
    return (decay + carry * _norm_cdf(-d2)) / 365


def vega(p: OptionParams) -> float:
    """Price change for a one-point (1%) move in volatility."""
    if p.time_to_expiry <= 0:
        return 0.0
    return p.spot_price * _norm_pdf(_d1(p)) * math.sqrt(p.time_to_expiry) / 100


def historical_volatility(prices: list[float], timeframe: str = "daily") -> float:
    """Annualised close-to-close volatility.

    Uses log returns and the sample (n-1) variance, annualised with 365
    periods for daily prices or 365 * 24 for hourly prices.

    Args:
        prices: Chronological closes.
        timeframe: "daily" or "hourly".

    Raises:
        InvalidInput: With fewer than two prices or an unknown timeframe.
    """
    if len(prices) < 2:
        raise InvalidInput("need at least 2 price points")
    if timeframe not in ("daily", "hourly"):
        raise InvalidInput(f"unknown timeframe {timeframe!r}")

    returns = [math.log(cur / prev) for prev, cur in zip(prices, prices[1:])]
    if len(returns) < 2:
        return 0.0
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / (len(returns) - 1)

    periods_per_year = 365 if timeframe == "daily" else 365 * 24
    return math.sqrt(variance * periods_per_year)


def days_to_years(days: float) -> float:
    return days / 365


def days_to_expiry(now_ms: int, expiry_ms: int) -> float:
    return max(0.0, (expiry_ms - now_ms) / _MS_PER_DAY)
