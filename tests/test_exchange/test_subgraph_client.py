"""Tests for SubgraphPoolClient.

Requests go through httpx.MockTransport; each handler inspects the
GraphQL body and answers with a canned payload.
"""

import json
from decimal import Decimal

import httpx
import pytest

from lphedge.config import SubgraphSettings
from lphedge.exceptions import CollaboratorFailure, InvalidInput
from lphedge.exchange.subgraph_client import SubgraphPoolClient, parse_pool_day

DAY0 = 1_704_067_200
SECONDS_PER_DAY = 86_400


def _day_row(day: int, tick: object = 100) -> dict:
    return {
        "date": DAY0 + day * SECONDS_PER_DAY,
        "tvlUSD": "1500000.5",
        "token0Price": "2000.25",
        "token1Price": "0.0005",
        "tick": tick,
        "volumeUSD": "250000",
        "feesUSD": "125.5",
    }


def _position_row(idx: int) -> dict:
    return {
        "id": str(idx),
        "owner": "0xlp",
        "liquidity": "1000000",
        "tickLower": {"tickIdx": "-600"},
        "tickUpper": {"tickIdx": "600"},
    }


def _live_row(tick_lower: str = "-1000", tick_upper: str = "1000") -> dict:
    return {
        "id": "42",
        "owner": "0xowner",
        "liquidity": "1000000000000000000",
        "tickLower": {"tickIdx": tick_lower},
        "tickUpper": {"tickIdx": tick_upper},
        "pool": {
            "id": "0xpool",
            "tick": "0",
            "token0": {"symbol": "WETH", "decimals": "18"},
            "token1": {"symbol": "USDC", "decimals": "6"},
        },
    }


def _client(handler, venue: str = "aerodrome", api_key: str = "key") -> SubgraphPoolClient:
    return SubgraphPoolClient(
        SubgraphSettings(api_key=api_key), venue=venue, transport=httpx.MockTransport(handler)
    )


# ---------------------------------------------------------------------------
# Construction / parsing
# ---------------------------------------------------------------------------


class TestSetup:
    def test_unknown_venue_rejected(self) -> None:
        with pytest.raises(InvalidInput):
            SubgraphPoolClient(SubgraphSettings(), venue="sushiswap")

    def test_null_tick_defaults_to_zero(self) -> None:
        snapshot = parse_pool_day(_day_row(0, tick=None))
        assert snapshot.tick == 0

    def test_missing_fees_default_to_zero(self) -> None:
        row = _day_row(0)
        del row["feesUSD"]
        assert parse_pool_day(row).fees_usd == Decimal("0")


# ---------------------------------------------------------------------------
# Pool days
# ---------------------------------------------------------------------------


class TestPoolDays:
    @pytest.mark.asyncio
    async def test_parses_rows_and_sends_auth(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {"poolDayDatas": [_day_row(0), _day_row(1)]}})

        client = _client(handler)
        snapshots = await client.fetch_pool_day_snapshots("0xPOOL", DAY0, DAY0 + SECONDS_PER_DAY)
        await client.close()

        assert len(snapshots) == 2
        assert snapshots[0].tvl_usd == Decimal("1500000.5")
        assert snapshots[0].token0_price == Decimal("2000.25")
        assert snapshots[0].tick == 100
        assert snapshots[1].fees_usd == Decimal("125.5")

        assert len(seen) == 1
        assert seen[0].headers["Authorization"] == "Bearer key"
        body = json.loads(seen[0].content)
        assert body["operationName"] == "PoolDayData"
        assert body["variables"]["poolId"] == "0xpool"
        assert body["variables"]["startDate"] == DAY0

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {"poolDayDatas": []}})

        client = _client(handler, venue="uniswap", api_key="")
        assert await client.fetch_pool_day_snapshots("0xpool", DAY0, DAY0) == []
        await client.close()

        assert "Authorization" not in seen[0].headers
        assert "5zvR82QoaXYFyDEKLZ9t6v9adgnptxYpKpSbxtgVENFV" in str(seen[0].url)

    @pytest.mark.asyncio
    async def test_pages_by_date_cursor(self) -> None:
        cursors: list[int] = []
        full_page = [_day_row(d) for d in range(1000)]

        def handler(request: httpx.Request) -> httpx.Response:
            start = json.loads(request.content)["variables"]["startDate"]
            cursors.append(start)
            rows = full_page if start == DAY0 else [_day_row(1000)]
            return httpx.Response(200, json={"data": {"poolDayDatas": rows}})

        client = _client(handler)
        snapshots = await client.fetch_pool_day_snapshots("0xpool", DAY0, DAY0 + 2000 * SECONDS_PER_DAY)
        await client.close()

        assert len(snapshots) == 1001
        assert cursors == [DAY0, DAY0 + 999 * SECONDS_PER_DAY + 1]


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


class TestPositions:
    @pytest.mark.asyncio
    async def test_pages_with_skip(self) -> None:
        skips: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            skip = json.loads(request.content)["variables"]["skip"]
            skips.append(skip)
            count = 1000 if skip == 0 else 3
            rows = [_position_row(skip + i) for i in range(count)]
            return httpx.Response(200, json={"data": {"positions": rows}})

        client = _client(handler)
        positions = await client.fetch_pool_positions("0xpool")
        await client.close()

        assert skips == [0, 1000]
        assert len(positions) == 1003
        assert positions[0].tick_lower == -600
        assert positions[0].tick_upper == 600
        assert positions[0].liquidity == Decimal("1000000")

    @pytest.mark.asyncio
    async def test_live_position_amounts_in_token_units(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            variables = json.loads(request.content)["variables"]
            assert variables == {"owner": "0xowner", "poolId": "0xpool"}
            return httpx.Response(200, json={"data": {"positions": [_live_row()]}})

        client = _client(handler)
        position = await client.fetch_live_position("0xOWNER", "0xPool")
        await client.close()

        assert position is not None
        assert position.token_id == "42"
        assert position.in_range
        assert position.token0_symbol == "WETH"
        assert position.token0_amount > 0
        assert position.token1_amount > position.token0_amount
        assert position.uncollected_fees_usd == 0

    @pytest.mark.asyncio
    async def test_live_position_none_when_absent(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={"data": {"positions": []}}))
        assert await client.fetch_live_position("0xowner", "0xpool") is None
        await client.close()


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    async def test_graphql_errors(self) -> None:
        client = _client(
            lambda request: httpx.Response(200, json={"errors": [{"message": "indexer down"}]})
        )
        with pytest.raises(CollaboratorFailure, match="indexer down"):
            await client.fetch_pool_positions("0xpool")
        await client.close()

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        client = _client(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(CollaboratorFailure):
            await client.fetch_pool_day_snapshots("0xpool", DAY0, DAY0)
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_data(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(CollaboratorFailure, match="no data"):
            await client.fetch_pool_positions("0xpool")
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_day_row(self) -> None:
        bad = _day_row(0)
        del bad["tvlUSD"]
        client = _client(lambda request: httpx.Response(200, json={"data": {"poolDayDatas": [bad]}}))
        with pytest.raises(CollaboratorFailure, match="malformed"):
            await client.fetch_pool_day_snapshots("0xpool", DAY0, DAY0)
        await client.close()

    @pytest.mark.asyncio
    async def test_inverted_live_ticks(self) -> None:
        row = _live_row(tick_lower="1000", tick_upper="-1000")
        client = _client(lambda request: httpx.Response(200, json={"data": {"positions": [row]}}))
        with pytest.raises(CollaboratorFailure, match="malformed live position"):
            await client.fetch_live_position("0xowner", "0xpool")
        await client.close()
