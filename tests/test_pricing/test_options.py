"""Tests for Black-Scholes pricing, greeks and historical volatility."""

import math

import pytest

from lphedge.exceptions import InvalidInput
from lphedge.pricing.options import (
    OptionParams,
    OptionType,
    black_scholes_price,
    days_to_expiry,
    days_to_years,
    delta,
    gamma,
    historical_volatility,
    intrinsic_value,
    theta,
    time_value,
    vega,
)


def _params(option_type: OptionType = OptionType.CALL, **overrides: float) -> OptionParams:
    values = dict(
        spot_price=100.0,
        strike_price=100.0,
        time_to_expiry=1.0,
        risk_free_rate=0.05,
        volatility=0.2,
    )
    values.update(overrides)
    return OptionParams(option_type=option_type, **values)


class TestPricing:
    """Textbook at-the-money case: S=K=100, T=1, r=5%, vol=20%."""

    def test_call_price(self) -> None:
        assert black_scholes_price(_params()) == pytest.approx(10.4506, abs=1e-3)

    def test_put_price(self) -> None:
        assert black_scholes_price(_params(OptionType.PUT)) == pytest.approx(5.5735, abs=1e-3)

    def test_put_call_parity(self) -> None:
        call = black_scholes_price(_params())
        put = black_scholes_price(_params(OptionType.PUT))
        assert call - put == pytest.approx(100.0 - 100.0 * math.exp(-0.05), abs=1e-9)

    def test_expired_option_is_intrinsic(self) -> None:
        p = _params(OptionType.PUT, spot_price=90.0, time_to_expiry=0.0)
        assert black_scholes_price(p) == 10.0
        assert time_value(p) == 0.0

    def test_intrinsic_value(self) -> None:
        assert intrinsic_value(120.0, 100.0, OptionType.CALL) == 20.0
        assert intrinsic_value(120.0, 100.0, OptionType.PUT) == 0.0


class TestGreeks:
    def test_call_delta(self) -> None:
        assert delta(_params()) == pytest.approx(0.6368, abs=1e-3)

    def test_put_delta_is_call_delta_minus_one(self) -> None:
        assert delta(_params(OptionType.PUT)) == pytest.approx(delta(_params()) - 1.0)

    def test_gamma(self) -> None:
        assert gamma(_params()) == pytest.approx(0.01876, abs=1e-4)

    def test_vega_per_volatility_point(self) -> None:
        assert vega(_params()) == pytest.approx(0.3752, abs=1e-3)

    def test_theta_is_daily_decay(self) -> None:
        assert theta(_params()) == pytest.approx(-6.414 / 365, abs=1e-3)

    def test_expired_greeks(self) -> None:
        p = _params(spot_price=110.0, time_to_expiry=0.0)
        assert delta(p) == 1.0
        assert gamma(p) == 0.0
        assert theta(p) == 0.0
        assert vega(p) == 0.0


class TestHistoricalVolatility:
    def test_constant_growth_has_zero_volatility(self) -> None:
        prices = [100.0 * 1.01**i for i in range(10)]
        assert historical_volatility(prices) == pytest.approx(0.0, abs=1e-12)

    def test_two_prices_give_zero(self) -> None:
        assert historical_volatility([100.0, 110.0]) == 0.0

    def test_hourly_annualises_with_more_periods(self) -> None:
        prices = [100.0, 102.0, 99.0, 101.0, 98.0]
        daily = historical_volatility(prices, "daily")
        hourly = historical_volatility(prices, "hourly")
        assert hourly == pytest.approx(daily * math.sqrt(24))

    def test_requires_two_prices(self) -> None:
        with pytest.raises(InvalidInput):
            historical_volatility([100.0])

    def test_rejects_unknown_timeframe(self) -> None:
        with pytest.raises(InvalidInput):
            historical_volatility([100.0, 101.0, 102.0], "weekly")


def test_days_conversions() -> None:
    assert days_to_years(365) == 1.0
    assert days_to_expiry(0, 2 * 86_400_000) == 2.0
    assert days_to_expiry(5 * 86_400_000, 0) == 0.0
