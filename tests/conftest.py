"""Shared test fixtures for the LP hedge backtester and live loop."""

from collections.abc import Callable
from decimal import Decimal

import pytest

from lphedge.config import (
    AppSettings,
    BacktestSettings,
    HedgeSettings,
    LiveSettings,
    LpSettings,
)
from lphedge.logging import setup_logging
from lphedge.models import FundingRatePeriod, LpPositionSnapshot, PoolDaySnapshot, PriceCandle

# 2024-01-01T00:00:00Z
DAY0 = 1_704_067_200
SECONDS_PER_DAY = 86_400


@pytest.fixture(autouse=True)
def _configure_logging() -> None:
    """Route structlog through stdlib logging (stderr), as the CLI entry point does."""
    setup_logging("DEBUG")


@pytest.fixture
def mock_settings() -> AppSettings:
    """AppSettings with test defaults (paper mode, no keys)."""
    return AppSettings(
        log_level="DEBUG",
        hedge=HedgeSettings(),
        lp=LpSettings(),
        backtest=BacktestSettings(aggregate_funding_to_8h=False),
        strategy=LiveSettings(mode="paper", owner_address="0xowner", pool_address="0xpool"),
    )


@pytest.fixture
def make_snapshot() -> Callable[..., PoolDaySnapshot]:
    """Factory for pool days; `day` is the offset from 2024-01-01."""

    def _make(
        day: int = 0,
        tvl: str = "100000",
        price: str = "2000",
        tick: int = 0,
        volume: str = "0",
        fees: str = "100",
    ) -> PoolDaySnapshot:
        return PoolDaySnapshot(
            date=DAY0 + day * SECONDS_PER_DAY,
            tvl_usd=Decimal(tvl),
            token0_price=Decimal(price),
            tick=tick,
            volume_usd=Decimal(volume),
            fees_usd=Decimal(fees),
        )

    return _make


@pytest.fixture
def make_candle() -> Callable[..., PriceCandle]:
    def _make(day: int = 0, close: str = "2000", offset_ms: int = 0) -> PriceCandle:
        price = Decimal(close)
        return PriceCandle(
            timestamp_ms=(DAY0 + day * SECONDS_PER_DAY) * 1000 + offset_ms,
            open=price,
            high=price,
            low=price,
            close=price,
        )

    return _make


@pytest.fixture
def make_funding() -> Callable[..., FundingRatePeriod]:
    def _make(day: int = 0, rate: str = "0.0001", offset_ms: int = 0) -> FundingRatePeriod:
        return FundingRatePeriod(
            coin="BTC",
            time_ms=(DAY0 + day * SECONDS_PER_DAY) * 1000 + offset_ms,
            funding_rate=Decimal(rate),
        )

    return _make


@pytest.fixture
def make_live_position() -> Callable[..., LpPositionSnapshot]:
    """Factory for live positions; defaults are in range and balanced at 2000."""

    def _make(
        current_tick: int = 0,
        token0_amount: str = "1",
        token1_amount: str = "2000",
        uncollected_fees_usd: str = "0",
    ) -> LpPositionSnapshot:
        return LpPositionSnapshot(
            token_id="42",
            owner="0xowner",
            pool="0xpool",
            tick_lower=-1000,
            tick_upper=1000,
            current_tick=current_tick,
            liquidity=Decimal("1000000"),
            token0_symbol="WETH",
            token1_symbol="USDC",
            token0_amount=Decimal(token0_amount),
            token1_amount=Decimal(token1_amount),
            uncollected_fees_usd=Decimal(uncollected_fees_usd),
        )

    return _make
