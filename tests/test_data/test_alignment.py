"""Tests for nearest-timestamp joins of candles and funding onto pool days.

Verifies:
- Nearest selection with first-wins tie breaking
- Funding window and optional candle tolerance
- MissingJoinData when funding (or a tolerated candle) is absent
- Pool price standing in for the hedge price without candles
"""

from decimal import Decimal

import pytest

from lphedge.data.alignment import MS_PER_HOUR, build_day_context, nearest_candle, nearest_funding
from lphedge.exceptions import MissingJoinData


class TestNearest:
    def test_picks_closest_candle(self, make_candle) -> None:
        candles = [make_candle(day=0), make_candle(day=1), make_candle(day=2)]
        at_ms = candles[1].timestamp_ms + 5 * MS_PER_HOUR
        assert nearest_candle(candles, at_ms) is candles[1]

    def test_tie_goes_to_first_entry(self, make_candle) -> None:
        before = make_candle(close="1990", offset_ms=-10_000)
        after = make_candle(close="2010", offset_ms=10_000)
        at_ms = before.timestamp_ms + 10_000
        assert nearest_candle([before, after], at_ms) is before
        assert nearest_candle([after, before], at_ms) is after

    def test_empty_series(self) -> None:
        assert nearest_candle([], 0) is None

    def test_candle_tolerance(self, make_candle) -> None:
        candle = make_candle(offset_ms=3 * MS_PER_HOUR)
        at_ms = candle.timestamp_ms - 3 * MS_PER_HOUR
        assert nearest_candle([candle], at_ms, tolerance_ms=2 * MS_PER_HOUR) is None
        assert nearest_candle([candle], at_ms, tolerance_ms=3 * MS_PER_HOUR) is candle

    def test_funding_window(self, make_funding) -> None:
        period = make_funding(offset_ms=9 * MS_PER_HOUR)
        at_ms = period.time_ms - 9 * MS_PER_HOUR
        assert nearest_funding([period], at_ms, 8 * MS_PER_HOUR) is None
        assert nearest_funding([period], at_ms, 9 * MS_PER_HOUR) is period


class TestBuildDayContext:
    def test_joins_candle_and_funding(self, make_snapshot, make_candle, make_funding) -> None:
        snapshot = make_snapshot(day=1)
        candles = [make_candle(day=0, close="1900"), make_candle(day=1, close="2100")]
        funding = [make_funding(day=1, rate="0.0003", offset_ms=2 * MS_PER_HOUR)]

        context = build_day_context(1, snapshot, candles, funding)

        assert context.day_index == 1
        assert context.hedge_price == Decimal("2100")
        assert context.funding.funding_rate == Decimal("0.0003")

    def test_missing_funding_raises(self, make_snapshot, make_candle, make_funding) -> None:
        snapshot = make_snapshot(day=1)
        with pytest.raises(MissingJoinData):
            build_day_context(0, snapshot, [make_candle(day=1)], [make_funding(day=0)])

    def test_wider_funding_window(self, make_snapshot, make_funding) -> None:
        snapshot = make_snapshot(day=1)
        context = build_day_context(0, snapshot, [], [make_funding(day=0)], funding_window_hours=24)
        assert context.funding.time_ms == make_funding(day=0).time_ms

    def test_no_candles_uses_pool_price(self, make_snapshot, make_funding) -> None:
        snapshot = make_snapshot(price="1234.5")
        context = build_day_context(0, snapshot, [], [make_funding()])
        assert context.candle is None
        assert context.hedge_price == Decimal("1234.5")

    def test_far_candle_used_without_tolerance(self, make_snapshot, make_candle, make_funding) -> None:
        snapshot = make_snapshot(day=10)
        context = build_day_context(0, snapshot, [make_candle(day=0, close="1500")], [make_funding(day=10)])
        assert context.hedge_price == Decimal("1500")

    def test_far_candle_rejected_with_tolerance(self, make_snapshot, make_candle, make_funding) -> None:
        snapshot = make_snapshot(day=10)
        with pytest.raises(MissingJoinData):
            build_day_context(
                0,
                snapshot,
                [make_candle(day=0)],
                [make_funding(day=10)],
                price_tolerance_hours=12,
            )
