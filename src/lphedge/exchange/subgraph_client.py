"""Concentrated-liquidity pool data from The Graph via httpx.

Serves both venues (Aerodrome Slipstream and Uniswap v3) since their
subgraphs share the poolDayDatas / positions schema. Raw GraphQL rows
are validated into PoolDaySnapshot, PoolPosition and LpPositionSnapshot
here; malformed payloads and transport errors become CollaboratorFailure.
"""

from decimal import Decimal
from typing import Any

import httpx

from lphedge.config import SubgraphSettings
from lphedge.data.sources import PoolDataSource
from lphedge.exceptions import CollaboratorFailure, InvalidInput
from lphedge.logging import get_logger
from lphedge.models import LpPositionSnapshot, PoolDaySnapshot, PoolPosition
from lphedge.pricing.liquidity import concentrated_amounts, tick_to_price

logger = get_logger(__name__)

_PAGE_SIZE = 1000

POOL_DAY_DATA_QUERY = """
query PoolDayData($poolId: String!, $startDate: Int!, $endDate: Int!, $first: Int!) {
  poolDayDatas(
    where: { pool: $poolId, date_gte: $startDate, date_lte: $endDate }
    orderBy: date
    orderDirection: asc
    first: $first
  ) {
    date
    tvlUSD
    token0Price
    token1Price
    tick
    volumeUSD
    feesUSD
  }
}
"""

POOL_POSITIONS_QUERY = """
query PoolPositions($poolId: String!, $first: Int!, $skip: Int!) {
  positions(
    where: { pool: $poolId, liquidity_gt: 0 }
    orderBy: id
    first: $first
    skip: $skip
  ) {
    id
    owner
    liquidity
    tickLower { tickIdx }
    tickUpper { tickIdx }
  }
}
"""

LIVE_POSITION_QUERY = """
query LivePosition($owner: String!, $poolId: String!) {
  positions(
    where: { owner: $owner, pool: $poolId, liquidity_gt: 0 }
    orderBy: liquidity
    orderDirection: desc
    first: 1
  ) {
    id
    owner
    liquidity
    tickLower { tickIdx }
    tickUpper { tickIdx }
    pool {
      id
      tick
      token0 { symbol decimals }
      token1 { symbol decimals }
    }
  }
}
"""


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def parse_pool_day(row: dict) -> PoolDaySnapshot:
    return PoolDaySnapshot(
        date=int(row["date"]),
        tvl_usd=_dec(row["tvlUSD"]),
        token0_price=_dec(row["token0Price"]),
        tick=int(row.get("tick") or 0),
        volume_usd=_dec(row.get("volumeUSD") or "0"),
        fees_usd=_dec(row.get("feesUSD") or "0"),
        token1_price=_dec(row.get("token1Price") or "0"),
    )


def parse_pool_position(row: dict) -> PoolPosition:
    return PoolPosition(
        position_id=str(row["id"]),
        liquidity=_dec(row["liquidity"]),
        tick_lower=int(row["tickLower"]["tickIdx"]),
        tick_upper=int(row["tickUpper"]["tickIdx"]),
        owner=str(row.get("owner") or ""),
    )


def parse_live_position(row: dict) -> LpPositionSnapshot:
    """Validated live position with human-unit token amounts.

    Amounts come from liquidity and the band prices at the pool tick,
    scaled down by each token's decimals.
    """
    pool = row["pool"]
    tick_lower = int(row["tickLower"]["tickIdx"])
    tick_upper = int(row["tickUpper"]["tickIdx"])
    current_tick = int(pool["tick"])
    liquidity = _dec(row["liquidity"])

    raw0, raw1 = concentrated_amounts(
        liquidity,
        tick_to_price(current_tick),
        tick_to_price(tick_lower),
        tick_to_price(tick_upper),
    )
    decimals0 = int(pool["token0"]["decimals"])
    decimals1 = int(pool["token1"]["decimals"])

    return LpPositionSnapshot(
        token_id=str(row["id"]),
        owner=str(row["owner"]),
        pool=str(pool["id"]),
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        current_tick=current_tick,
        liquidity=liquidity,
        token0_symbol=str(pool["token0"]["symbol"]),
        token1_symbol=str(pool["token1"]["symbol"]),
        token0_amount=raw0.scaleb(-decimals0),
        token1_amount=raw1.scaleb(-decimals1),
    )


class SubgraphPoolClient(PoolDataSource):
    """GraphQL pool data source for one venue.

    Args:
        settings: Gateway URLs, API key and timeout.
        venue: "aerodrome" or "uniswap".
        transport: Optional httpx transport (tests pass an httpx.MockTransport).
    """

    def __init__(
        self,
        settings: SubgraphSettings,
        venue: str = "aerodrome",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if venue not in ("aerodrome", "uniswap"):
            raise InvalidInput(f"unknown venue {venue!r}")
        self._settings = settings
        self._venue = venue
        self._url = settings.aerodrome_url if venue == "aerodrome" else settings.uniswap_url

        headers = {"Content-Type": "application/json"}
        api_key = settings.api_key.get_secret_value()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            headers=headers, timeout=settings.timeout_seconds, transport=transport
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _query(self, query: str, variables: dict, operation: str) -> dict:
        try:
            response = await self._client.post(
                self._url,
                json={"query": query, "variables": variables, "operationName": operation},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorFailure(f"{self._venue} subgraph {operation} failed: {e}") from e

        if payload.get("errors"):
            raise CollaboratorFailure(f"{self._venue} subgraph {operation} errors: {payload['errors']}")
        data = payload.get("data")
        if data is None:
            raise CollaboratorFailure(f"{self._venue} subgraph {operation} returned no data")
        return data

    async def fetch_pool_day_snapshots(
        self, pool_id: str, start_day: int, end_day: int
    ) -> list[PoolDaySnapshot]:
        """Pool days in [start_day, end_day], ascending, paging by date."""
        snapshots: list[PoolDaySnapshot] = []
        cursor = start_day
        while cursor <= end_day:
            data = await self._query(
                POOL_DAY_DATA_QUERY,
                {"poolId": pool_id.lower(), "startDate": cursor, "endDate": end_day, "first": _PAGE_SIZE},
                "PoolDayData",
            )
            rows = data.get("poolDayDatas") or []
            try:
                page = [parse_pool_day(row) for row in rows]
            except (KeyError, TypeError, ArithmeticError) as e:
                raise CollaboratorFailure(f"malformed poolDayData row: {e}") from e
            snapshots.extend(page)
            if len(rows) < _PAGE_SIZE:
                break
            cursor = page[-1].date + 1

        logger.info("fetched_pool_days", venue=self._venue, pool_id=pool_id, count=len(snapshots))
        return snapshots

    async def fetch_pool_positions(self, pool_id: str) -> list[PoolPosition]:
        positions: list[PoolPosition] = []
        skip = 0
        while True:
            data = await self._query(
                POOL_POSITIONS_QUERY,
                {"poolId": pool_id.lower(), "first": _PAGE_SIZE, "skip": skip},
                "PoolPositions",
            )
            rows = data.get("positions") or []
            try:
                positions.extend(parse_pool_position(row) for row in rows)
            except (KeyError, TypeError, ArithmeticError) as e:
                raise CollaboratorFailure(f"malformed position row: {e}") from e
            if len(rows) < _PAGE_SIZE:
                break
            skip += _PAGE_SIZE

        logger.info("fetched_pool_positions", venue=self._venue, pool_id=pool_id, count=len(positions))
        return positions

    async def fetch_live_position(self, owner: str, pool_id: str) -> LpPositionSnapshot | None:
        data = await self._query(
            LIVE_POSITION_QUERY,
            {"owner": owner.lower(), "poolId": pool_id.lower()},
            "LivePosition",
        )
        rows = data.get("positions") or []
        if not rows:
            return None
        try:
            return parse_live_position(rows[0])
        except (KeyError, TypeError, ArithmeticError, InvalidInput) as e:
            raise CollaboratorFailure(f"malformed live position: {e}") from e
