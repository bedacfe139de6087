"""Hyperliquid perpetuals client via ccxt async.

Wraps ccxt.async_support.hyperliquid as both the price/funding data
source for backtests and the hedge order collaborator for the live loop.
Every ccxt error is re-raised as CollaboratorFailure; nothing is retried.
"""

from decimal import Decimal
from uuid import uuid4

import ccxt
import ccxt.async_support as ccxt_async

from lphedge.config import HyperliquidSettings
from lphedge.data.sources import HedgeTrader, PerpDataSource
from lphedge.exceptions import CollaboratorFailure
from lphedge.logging import get_logger
from lphedge.models import FundingRatePeriod, OrderResult, PriceCandle

logger = get_logger(__name__)

_OHLCV_PAGE_LIMIT = 500
_TIMEFRAME_MS = {
    "1h": 60 * 60 * 1000,
    "4h": 4 * 60 * 60 * 1000,
    "8h": 8 * 60 * 60 * 1000,
    "1d": 24 * 60 * 60 * 1000,
}


def perp_symbol(asset: str) -> str:
    """ccxt unified symbol for a Hyperliquid USDC-margined perp."""
    return f"{asset}/USDC:USDC"


class HyperliquidClient(PerpDataSource, HedgeTrader):
    """Concrete Hyperliquid client using ccxt async."""

    def __init__(self, settings: HyperliquidSettings) -> None:
        self._settings = settings
        self._exchange = ccxt_async.hyperliquid(
            {
                "walletAddress": settings.wallet_address,
                "privateKey": settings.private_key.get_secret_value(),
                "enableRateLimit": True,
            }
        )
        if settings.testnet:
            self._exchange.set_sandbox_mode(True)
        self._markets: dict = {}

    @property
    def exchange(self) -> ccxt_async.hyperliquid:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Load markets."""
        logger.info("connecting_to_hyperliquid", testnet=self._settings.testnet)
        try:
            self._markets = await self._exchange.load_markets()
        except ccxt.BaseError as e:
            raise CollaboratorFailure(f"hyperliquid load_markets failed: {e}") from e
        logger.info("hyperliquid_connected", market_count=len(self._markets))

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()
        logger.info("hyperliquid_connection_closed")

    # ------------------------------------------------------------------
    # PerpDataSource
    # ------------------------------------------------------------------

    async def fetch_price_history(
        self, asset: str, granularity: str, start_ms: int, end_ms: int
    ) -> list[PriceCandle]:
        """Fetch candles for [start_ms, end_ms], paging forward by timestamp."""
        symbol = perp_symbol(asset)
        step_ms = _TIMEFRAME_MS.get(granularity, _TIMEFRAME_MS["1d"])
        candles: list[PriceCandle] = []
        since = start_ms

        while since <= end_ms:
            try:
                rows = await self._exchange.fetch_ohlcv(
                    symbol, granularity, since=since, limit=_OHLCV_PAGE_LIMIT, params={"until": end_ms}
                )
            except ccxt.BaseError as e:
                raise CollaboratorFailure(f"fetch_ohlcv {symbol} failed: {e}") from e
            if not rows:
                break

            for ts, open_, high, low, close, volume in rows:
                if ts > end_ms:
                    break
                candles.append(
                    PriceCandle(
                        timestamp_ms=int(ts),
                        open=Decimal(str(open_)),
                        high=Decimal(str(high)),
                        low=Decimal(str(low)),
                        close=Decimal(str(close)),
                        volume=Decimal(str(volume or 0)),
                    )
                )
            next_since = int(rows[-1][0]) + step_ms
            if next_since <= since:
                break
            since = next_since

        logger.debug("fetched_price_history", symbol=symbol, count=len(candles))
        return candles

    async def fetch_funding_history(
        self, asset: str, start_ms: int, end_ms: int
    ) -> list[FundingRatePeriod]:
        """Fetch hourly funding entries, chunking by page limit, sorted by time."""
        symbol = perp_symbol(asset)
        limit = self._settings.funding_page_limit
        by_time: dict[int, FundingRatePeriod] = {}
        since = start_ms

        while since <= end_ms:
            try:
                rows = await self._exchange.fetch_funding_rate_history(
                    symbol, since=since, limit=limit, params={"until": end_ms}
                )
            except ccxt.BaseError as e:
                raise CollaboratorFailure(f"fetch_funding_rate_history {symbol} failed: {e}") from e
            if not rows:
                break

            last_ts = since
            for row in rows:
                ts = int(row["timestamp"])
                last_ts = max(last_ts, ts)
                if ts > end_ms:
                    continue
                info = row.get("info") or {}
                by_time[ts] = FundingRatePeriod(
                    coin=asset,
                    time_ms=ts,
                    funding_rate=Decimal(str(row["fundingRate"])),
                    premium=Decimal(str(info.get("premium", "0"))),
                )
            if len(rows) < limit or last_ts + 1 <= since:
                break
            since = last_ts + 1

        periods = [by_time[ts] for ts in sorted(by_time)]
        logger.debug("fetched_funding_history", symbol=symbol, count=len(periods))
        return periods

    async def fetch_current_funding(self, asset: str) -> Decimal:
        symbol = perp_symbol(asset)
        try:
            data = await self._exchange.fetch_funding_rate(symbol)
        except ccxt.BaseError as e:
            raise CollaboratorFailure(f"fetch_funding_rate {symbol} failed: {e}") from e
        return Decimal(str(data["fundingRate"]))

    async def fetch_mark_price(self, asset: str) -> Decimal:
        symbol = perp_symbol(asset)
        try:
            ticker = await self._exchange.fetch_ticker(symbol)
        except ccxt.BaseError as e:
            raise CollaboratorFailure(f"fetch_ticker {symbol} failed: {e}") from e
        price = ticker.get("markPrice") or ticker.get("last")
        if price is None:
            raise CollaboratorFailure(f"no mark price in ticker for {symbol}")
        return Decimal(str(price))

    # ------------------------------------------------------------------
    # HedgeTrader
    # ------------------------------------------------------------------

    async def submit_hedge_order(
        self, asset: str, is_long: bool, leverage: Decimal, collateral: Decimal
    ) -> OrderResult:
        """Open a market hedge of collateral * leverage notional.

        Hyperliquid leverage is a whole number >= 1; the order size is
        computed from the requested leverage so notional is preserved.
        """
        symbol = perp_symbol(asset)
        price = await self.fetch_mark_price(asset)
        size = collateral * leverage / price
        exchange_leverage = max(1, int(leverage.to_integral_value()))
        side = "buy" if is_long else "sell"

        logger.info(
            "creating_hedge_order",
            symbol=symbol,
            side=side,
            size=str(size),
            leverage=str(leverage),
            collateral=str(collateral),
        )
        try:
            await self._exchange.set_leverage(exchange_leverage, symbol, params={"marginMode": "cross"})
            order = await self._exchange.create_order(
                symbol, "market", side, float(size), float(price)
            )
        except ccxt.BaseError as e:
            raise CollaboratorFailure(f"hedge order on {symbol} failed: {e}") from e

        return OrderResult(
            order_id=str(order.get("id") or uuid4()),
            asset=asset,
            is_long=is_long,
            size=Decimal(str(order.get("filled") or size)),
            price=Decimal(str(order.get("average") or price)),
            leverage=leverage,
        )

    async def close_hedge(self, asset: str) -> OrderResult | None:
        """Close the open position on the asset with a reduce-only market order."""
        symbol = perp_symbol(asset)
        try:
            positions = await self._exchange.fetch_positions([symbol])
        except ccxt.BaseError as e:
            raise CollaboratorFailure(f"fetch_positions {symbol} failed: {e}") from e

        open_position = next(
            (p for p in positions if p.get("symbol") == symbol and float(p.get("contracts") or 0) != 0),
            None,
        )
        if open_position is None:
            logger.info("no_hedge_to_close", symbol=symbol)
            return None

        contracts = Decimal(str(open_position["contracts"]))
        was_long = open_position.get("side") == "long"
        price = await self.fetch_mark_price(asset)
        side = "sell" if was_long else "buy"

        logger.info("closing_hedge", symbol=symbol, side=side, size=str(contracts))
        try:
            order = await self._exchange.create_order(
                symbol, "market", side, float(contracts), float(price), params={"reduceOnly": True}
            )
        except ccxt.BaseError as e:
            raise CollaboratorFailure(f"closing hedge on {symbol} failed: {e}") from e

        return OrderResult(
            order_id=str(order.get("id") or uuid4()),
            asset=asset,
            is_long=not was_long,
            size=contracts,
            price=Decimal(str(order.get("average") or price)),
            leverage=Decimal(str(open_position.get("leverage") or 1)),
        )
