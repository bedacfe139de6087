"""Data layer -- collaborator contracts and series alignment."""

from lphedge.data.alignment import build_day_context, nearest_candle, nearest_funding
from lphedge.data.funding import aggregate_funding_to_8h
from lphedge.data.sources import HedgeTrader, LiquidityManager, PerpDataSource, PoolDataSource

__all__ = [
    "HedgeTrader",
    "LiquidityManager",
    "PerpDataSource",
    "PoolDataSource",
    "aggregate_funding_to_8h",
    "build_day_context",
    "nearest_candle",
    "nearest_funding",
]
