"""Tests for PaperTrader.

Verifies:
- Hedge fills apply slippage against the order side
- Results are flagged simulated and carry paper- ids
- close_hedge inverts the open hedge, or returns None when flat
- Liquidity actions are recorded; collect_fees reports uncollected fees
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from lphedge.exceptions import CollaboratorFailure
from lphedge.exchange.paper import PaperTrader


@pytest.fixture
def trader() -> PaperTrader:
    return PaperTrader(fixed_price=Decimal("2000"))


class TestHedgeFills:
    @pytest.mark.asyncio
    async def test_short_fills_below_mark(self, trader: PaperTrader) -> None:
        result = await trader.submit_hedge_order("BTC", False, Decimal("1"), Decimal("1500"))

        assert result.price == Decimal("1999.0000")
        assert result.size == Decimal("1500") / Decimal("1999.0000")
        assert not result.is_long
        assert result.is_simulated
        assert result.order_id.startswith("paper-")

    @pytest.mark.asyncio
    async def test_long_fills_above_mark(self, trader: PaperTrader) -> None:
        result = await trader.submit_hedge_order("BTC", True, Decimal("2"), Decimal("500"))

        assert result.price == Decimal("2001.0000")
        assert result.size * result.price == pytest.approx(Decimal("1000"))
        assert result.leverage == Decimal("2")

    @pytest.mark.asyncio
    async def test_price_source_used(self) -> None:
        source = AsyncMock()
        source.fetch_mark_price.return_value = Decimal("100")
        trader = PaperTrader(price_source=source)

        result = await trader.submit_hedge_order("ETH", False, Decimal("1"), Decimal("100"))

        source.fetch_mark_price.assert_awaited_once_with("ETH")
        assert result.price == Decimal("99.9500")

    @pytest.mark.asyncio
    async def test_non_positive_price_rejected(self) -> None:
        source = AsyncMock()
        source.fetch_mark_price.return_value = Decimal("0")
        trader = PaperTrader(price_source=source)

        with pytest.raises(CollaboratorFailure):
            await trader.submit_hedge_order("ETH", False, Decimal("1"), Decimal("100"))

    def test_requires_a_price(self) -> None:
        with pytest.raises(ValueError):
            PaperTrader()


class TestCloseHedge:
    @pytest.mark.asyncio
    async def test_close_when_flat(self, trader: PaperTrader) -> None:
        assert await trader.close_hedge("BTC") is None
        assert trader.actions == []

    @pytest.mark.asyncio
    async def test_close_inverts_open_hedge(self, trader: PaperTrader) -> None:
        opened = await trader.submit_hedge_order("BTC", False, Decimal("1"), Decimal("1500"))
        assert trader.open_hedge("BTC") is not None

        closed = await trader.close_hedge("BTC")

        assert closed is not None
        assert closed.is_long
        assert closed.size == opened.size
        assert closed.price == Decimal("2000")
        assert trader.open_hedge("BTC") is None
        assert [a.kind for a in trader.actions] == ["submit_hedge_order", "close_hedge"]


class TestLiquidity:
    @pytest.mark.asyncio
    async def test_remove_liquidity_recorded(self, trader: PaperTrader, make_live_position) -> None:
        await trader.remove_liquidity(make_live_position())

        (action,) = trader.actions
        assert action.kind == "remove_liquidity"
        assert action.detail["token_id"] == "42"

    @pytest.mark.asyncio
    async def test_collect_fees_returns_uncollected(self, trader: PaperTrader, make_live_position) -> None:
        amount = await trader.collect_fees(make_live_position(uncollected_fees_usd="175.5"))

        assert amount == Decimal("175.5")
        assert trader.actions[-1].detail["amount"] == "175.5"
