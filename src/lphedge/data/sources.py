"""Abstract collaborator interfaces.

The backtest engine and live loop depend only on these contracts. Venue
specific code (subgraph GraphQL, ccxt exchanges, paper simulation) lives
in lphedge.exchange. Implementations raise CollaboratorFailure on any
transport or payload error; callers never retry.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from lphedge.models import (
    FundingRatePeriod,
    LpPositionSnapshot,
    OrderResult,
    PoolDaySnapshot,
    PoolPosition,
    PriceCandle,
)


class PoolDataSource(ABC):
    """Pool history, competing positions and live position lookups."""

    @abstractmethod
    async def fetch_pool_day_snapshots(
        self, pool_id: str, start_day: int, end_day: int
    ) -> list[PoolDaySnapshot]:
        """Daily snapshots for [start_day, end_day] (unix seconds), ascending by date."""
        ...

    @abstractmethod
    async def fetch_pool_positions(self, pool_id: str) -> list[PoolPosition]:
        """Open liquidity positions in the pool (for fee weighting)."""
        ...

    @abstractmethod
    async def fetch_live_position(self, owner: str, pool_id: str) -> LpPositionSnapshot | None:
        """The owner's current position in the pool, or None."""
        ...


class PerpDataSource(ABC):
    """Perpetual market data for the hedged asset."""

    @abstractmethod
    async def fetch_price_history(
        self, asset: str, granularity: str, start_ms: int, end_ms: int
    ) -> list[PriceCandle]:
        """OHLCV candles, ascending by timestamp."""
        ...

    @abstractmethod
    async def fetch_funding_history(
        self, asset: str, start_ms: int, end_ms: int
    ) -> list[FundingRatePeriod]:
        """Hourly funding entries, merged across pages and sorted by time."""
        ...

    @abstractmethod
    async def fetch_current_funding(self, asset: str) -> Decimal:
        """Current (predicted) funding rate per period."""
        ...

    @abstractmethod
    async def fetch_mark_price(self, asset: str) -> Decimal:
        """Current mark price."""
        ...


class HedgeTrader(ABC):
    """Order submission for the perp hedge."""

    @abstractmethod
    async def submit_hedge_order(
        self, asset: str, is_long: bool, leverage: Decimal, collateral: Decimal
    ) -> OrderResult:
        """Open a hedge of collateral * leverage notional."""
        ...

    @abstractmethod
    async def close_hedge(self, asset: str) -> OrderResult | None:
        """Close the whole hedge; None when there was nothing open."""
        ...


class LiquidityManager(ABC):
    """On-chain liquidity actions for the LP leg."""

    @abstractmethod
    async def remove_liquidity(self, position: LpPositionSnapshot) -> None:
        """Withdraw all liquidity (and owed tokens) from the position."""
        ...

    @abstractmethod
    async def collect_fees(self, position: LpPositionSnapshot) -> Decimal:
        """Collect accrued fees; returns the USD amount collected."""
        ...
