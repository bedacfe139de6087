"""Paper trading collaborators with simulated fills.

PaperTrader implements HedgeTrader and LiquidityManager without touching
any venue. Hedge fills are instant at the current mark price (from a
PerpDataSource, or a fixed price), with a small slippage against the
order side. Every call is recorded so paper runs can be inspected.

CRITICAL: All monetary values use Decimal. Never use float for prices or sizes.
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from lphedge.data.sources import HedgeTrader, LiquidityManager, PerpDataSource
from lphedge.exceptions import CollaboratorFailure
from lphedge.logging import get_logger
from lphedge.models import LpPositionSnapshot, OrderResult

logger = get_logger(__name__)

# Simulated slippage: 0.05% (5 basis points)
_SLIPPAGE = Decimal("0.0005")


@dataclass
class _PaperHedge:
    is_long: bool
    size: Decimal
    leverage: Decimal


@dataclass(frozen=True)
class PaperAction:
    """One recorded collaborator call."""

    kind: str
    asset: str
    detail: dict
    timestamp: float


class PaperTrader(HedgeTrader, LiquidityManager):
    """Simulated hedge and liquidity actions. All results have is_simulated=True.

    Args:
        price_source: Source of mark prices for fills.
        fixed_price: Used instead of a price source (tests, offline runs).
    """

    def __init__(
        self,
        price_source: PerpDataSource | None = None,
        fixed_price: Decimal | None = None,
    ) -> None:
        if price_source is None and fixed_price is None:
            raise ValueError("PaperTrader needs a price_source or a fixed_price")
        self._price_source = price_source
        self._fixed_price = fixed_price
        self._hedges: dict[str, _PaperHedge] = {}
        self._actions: list[PaperAction] = []

    @property
    def actions(self) -> list[PaperAction]:
        return list(self._actions)

    def open_hedge(self, asset: str) -> _PaperHedge | None:
        return self._hedges.get(asset)

    async def _price(self, asset: str) -> Decimal:
        if self._fixed_price is not None:
            return self._fixed_price
        price = await self._price_source.fetch_mark_price(asset)
        if price <= 0:
            raise CollaboratorFailure(f"no usable price for {asset}: {price}")
        return price

    def _record(self, kind: str, asset: str, **detail: object) -> None:
        self._actions.append(
            PaperAction(kind=kind, asset=asset, detail=detail, timestamp=time.time())
        )

    # ------------------------------------------------------------------
    # HedgeTrader
    # ------------------------------------------------------------------

    async def submit_hedge_order(
        self, asset: str, is_long: bool, leverage: Decimal, collateral: Decimal
    ) -> OrderResult:
        price = await self._price(asset)
        if is_long:
            fill_price = price * (Decimal("1") + _SLIPPAGE)
        else:
            fill_price = price * (Decimal("1") - _SLIPPAGE)
        size = collateral * leverage / fill_price

        self._hedges[asset] = _PaperHedge(is_long=is_long, size=size, leverage=leverage)
        self._record(
            "submit_hedge_order",
            asset,
            is_long=is_long,
            leverage=str(leverage),
            collateral=str(collateral),
            size=str(size),
            price=str(fill_price),
        )
        logger.info(
            "paper_hedge_opened",
            asset=asset,
            is_long=is_long,
            size=str(size),
            fill_price=str(fill_price),
            leverage=str(leverage),
        )
        return OrderResult(
            order_id=f"paper-{uuid4().hex[:12]}",
            asset=asset,
            is_long=is_long,
            size=size,
            price=fill_price,
            leverage=leverage,
            timestamp=time.time(),
            is_simulated=True,
        )

    async def close_hedge(self, asset: str) -> OrderResult | None:
        hedge = self._hedges.pop(asset, None)
        if hedge is None:
            return None

        price = await self._price(asset)
        self._record("close_hedge", asset, size=str(hedge.size), price=str(price))
        logger.info("paper_hedge_closed", asset=asset, size=str(hedge.size), price=str(price))
        return OrderResult(
            order_id=f"paper-{uuid4().hex[:12]}",
            asset=asset,
            is_long=not hedge.is_long,
            size=hedge.size,
            price=price,
            leverage=hedge.leverage,
            timestamp=time.time(),
            is_simulated=True,
        )

    # ------------------------------------------------------------------
    # LiquidityManager
    # ------------------------------------------------------------------

    async def remove_liquidity(self, position: LpPositionSnapshot) -> None:
        self._record(
            "remove_liquidity",
            position.token0_symbol,
            token_id=position.token_id,
            liquidity=str(position.liquidity),
        )
        logger.info("paper_liquidity_removed", token_id=position.token_id)

    async def collect_fees(self, position: LpPositionSnapshot) -> Decimal:
        amount = position.uncollected_fees_usd
        self._record("collect_fees", position.token0_symbol, token_id=position.token_id, amount=str(amount))
        logger.info("paper_fees_collected", token_id=position.token_id, amount=str(amount))
        return amount
