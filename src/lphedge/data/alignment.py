"""Nearest-timestamp joins of price and funding series onto pool days.

Joins pick the entry with the smallest absolute time difference; on a
tie the first entry in iteration order wins, so results are
deterministic for a fixed input ordering.
"""

from collections.abc import Callable, Sequence
from typing import TypeVar

from lphedge.exceptions import MissingJoinData
from lphedge.models import DayContext, FundingRatePeriod, PoolDaySnapshot, PriceCandle

T = TypeVar("T")

MS_PER_HOUR = 60 * 60 * 1000


def _nearest(items: Sequence[T], at_ms: int, time_of: Callable[[T], int], tolerance_ms: int | None) -> T | None:
    best: T | None = None
    best_diff: int | None = None
    for item in items:
        diff = abs(time_of(item) - at_ms)
        if best_diff is None or diff < best_diff:
            best, best_diff = item, diff
    if best_diff is None:
        return None
    if tolerance_ms is not None and best_diff > tolerance_ms:
        return None
    return best


def nearest_candle(
    candles: Sequence[PriceCandle], at_ms: int, tolerance_ms: int | None = None
) -> PriceCandle | None:
    """Closest candle to at_ms; None if empty or beyond tolerance (when given)."""
    return _nearest(candles, at_ms, lambda c: c.timestamp_ms, tolerance_ms)


def nearest_funding(
    periods: Sequence[FundingRatePeriod], at_ms: int, window_ms: int
) -> FundingRatePeriod | None:
    """Closest funding period within window_ms of at_ms, or None."""
    return _nearest(periods, at_ms, lambda p: p.time_ms, window_ms)


def build_day_context(
    day_index: int,
    snapshot: PoolDaySnapshot,
    candles: Sequence[PriceCandle],
    funding: Sequence[FundingRatePeriod],
    funding_window_hours: int = 8,
    price_tolerance_hours: int | None = None,
) -> DayContext:
    """Join one pool day with its price candle and funding period.

    Without a price tolerance the nearest candle at any distance is used;
    with no candles at all the context carries None and the pool price
    stands in for the hedge price.

    Raises:
        MissingJoinData: No funding period within the window, or no candle
            within the price tolerance when one is configured.
    """
    at_ms = snapshot.timestamp_ms

    period = nearest_funding(funding, at_ms, funding_window_hours * MS_PER_HOUR)
    if period is None:
        raise MissingJoinData(
            f"no funding period within {funding_window_hours}h of day {snapshot.date}"
        )

    tolerance_ms = None if price_tolerance_hours is None else price_tolerance_hours * MS_PER_HOUR
    candle = nearest_candle(candles, at_ms, tolerance_ms)
    if candle is None and tolerance_ms is not None and candles:
        raise MissingJoinData(
            f"no price candle within {price_tolerance_hours}h of day {snapshot.date}"
        )

    return DayContext(day_index=day_index, snapshot=snapshot, candle=candle, funding=period)
