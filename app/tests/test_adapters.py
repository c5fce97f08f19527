from __future__ import annotations

import httpx
import pytest

from app.services import coingecko, coinpaprika
from app.services.errors import BadStatus, DecodeFailure, MalformedEndpoint, TransportFailure
from app.services.global_fallback import fetch_global_fallback
from app.services.http_client import fetch_json


GECKO_ROWS = [
    {
        "id": "bitcoin",
        "symbol": "btc",
        "name": "Bitcoin",
        "image": "https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
        "current_price": 30000.0,
        "total_volume": 1.5e10,
        "price_change_percentage_24h": 5.0,
        "sparkline_in_7d": {"price": [29000.0, 29500.0, 30000.0]},
        "market_cap": 5.8e11,
    },
    {
        "id": "some-token",
        "symbol": "new",
        "name": "Newcomer",
        "image": None,
        "current_price": 0.5,
        "total_volume": 1000,
        "price_change_percentage_24h": None,
        "sparkline_in_7d": None,
    },
    {
        "id": "bitcoin-bridged",
        "symbol": "BTC",
        "name": "Bridged Bitcoin",
        "image": None,
        "current_price": 29990.0,
        "total_volume": 10,
    },
]

PAPRIKA_ROWS = [
    {"id": "eth-ethereum", "symbol": "ETH", "name": "Ethereum", "rank": 2,
     "quotes": {"USD": {"price": 1800.5, "volume_24h": 9e9, "percent_change_24h": -1.2}}},
    {"id": "zzz-unranked", "symbol": "ZZZ", "name": "Unranked", "rank": 0,
     "quotes": {"USD": {"price": 0.01}}},
    {"id": "btc-bitcoin", "symbol": "btc", "name": "Bitcoin", "rank": 1,
     "quotes": {"USD": {"price": 30010.0, "volume_24h": 2e10, "percent_change_24h": 4.9}}},
    {"id": "noq-noquotes", "symbol": "NOQ", "name": "No Quotes", "rank": 3, "quotes": None},
]

GLOBAL_BODY = {
    "data": {
        "active_cryptocurrencies": 12000,
        "markets": 900,
        "total_market_cap": {"usd": 1.2e12, "eur": 1.1e12},
        "total_volume": {"usd": 5.0e10},
        "market_cap_percentage": {"btc": 48.5, "eth": 17.1},
        "market_cap_change_percentage_24h_usd": 1.75,
        "updated_at": 1700000000,
    }
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_coingecko_markets_request_and_normalization():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json=GECKO_ROWS)

    async with _client(handler) as client:
        coins = await coingecko.fetch_coin_markets(client=client)

    assert seen["url"] == (
        "https://api.coingecko.com/api/v3/coins/markets"
        "?vs_currency=usd&order=market_cap_desc&per_page=100&page=1&sparkline=true"
    )

    # duplicate BTC dropped, first one kept
    assert [c.symbol for c in coins] == ["BTC", "NEW"]
    btc, new = coins
    assert btc.price == 30000.0
    assert btc.daily_change == 5.0
    assert btc.sparkline == [29000.0, 29500.0, 30000.0]
    assert btc.image_url.endswith("bitcoin.png")
    assert btc.is_favorite is False

    assert new.daily_change == 0.0
    assert new.sparkline == []
    assert new.image_url is None


@pytest.mark.asyncio
async def test_coingecko_bad_status():
    async with _client(lambda request: httpx.Response(429, json={"error": "rate limited"})) as client:
        with pytest.raises(BadStatus) as excinfo:
            await coingecko.fetch_coin_markets(client=client)
    assert excinfo.value.status_code == 429


@pytest.mark.asyncio
async def test_coingecko_invalid_json_is_decode_failure():
    async with _client(lambda request: httpx.Response(200, content=b"<html>oops</html>")) as client:
        with pytest.raises(DecodeFailure):
            await coingecko.fetch_coin_markets(client=client)


@pytest.mark.asyncio
async def test_coingecko_schema_mismatch_is_decode_failure():
    async with _client(lambda request: httpx.Response(200, json={"status": "not a list"})) as client:
        with pytest.raises(DecodeFailure):
            await coingecko.fetch_coin_markets(client=client)


@pytest.mark.asyncio
async def test_transport_error_is_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed", request=request)

    async with _client(handler) as client:
        with pytest.raises(TransportFailure) as excinfo:
            await coingecko.fetch_coin_markets(client=client)
    assert excinfo.value.source == "coingecko"


@pytest.mark.asyncio
async def test_non_http_url_is_malformed_endpoint():
    with pytest.raises(MalformedEndpoint):
        await fetch_json("ftp://example.invalid/markets", source="test")


@pytest.mark.asyncio
async def test_coinpaprika_normalization_orders_by_rank_and_defaults():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json=PAPRIKA_ROWS)

    async with _client(handler) as client:
        coins = await coinpaprika.fetch_tickers(client=client)

    assert seen["url"] == "https://api.coinpaprika.com/v1/tickers?quotes=USD"
    assert [c.symbol for c in coins] == ["BTC", "ETH", "NOQ", "ZZZ"]

    by_symbol = {c.symbol: c for c in coins}
    assert by_symbol["BTC"].price == 30010.0
    assert by_symbol["ETH"].daily_change == -1.2
    assert by_symbol["NOQ"].price == 0.0
    assert by_symbol["NOQ"].volume == 0.0
    assert by_symbol["ZZZ"].daily_change == 0.0
    assert all(c.sparkline == [] and c.image_url is None for c in coins)


def test_coinpaprika_keeps_coins_ranked_below_first_page():
    rows = [{"symbol": f"C{i}", "name": f"Coin {i}", "rank": i + 1, "quotes": {}} for i in range(150)]
    coins = coinpaprika.normalize_tickers(rows)
    assert len(coins) == 150
    assert coins[0].symbol == "C0"
    assert coins[-1].symbol == "C149"

    assert len(coinpaprika.normalize_tickers(rows, limit=coingecko.PAGE_SIZE)) == coingecko.PAGE_SIZE


@pytest.mark.asyncio
async def test_coingecko_global_normalization():
    async with _client(lambda request: httpx.Response(200, json=GLOBAL_BODY)) as client:
        stats = await coingecko.fetch_global_stats(client=client)

    assert stats.total_market_cap_usd == 1.2e12
    assert stats.total_volume_usd == 5.0e10
    assert stats.btc_dominance == 48.5
    assert stats.market_cap_change_24h_usd == 1.75
    assert stats.active_cryptocurrencies == 12000
    assert int(stats.last_updated.timestamp()) == 1700000000


def test_coingecko_global_missing_usd_defaults_to_zero():
    stats = coingecko.normalize_global_data({"data": {"total_market_cap": {"eur": 1.0}}})
    assert stats.total_market_cap_usd == 0.0
    assert stats.btc_dominance == 0.0
    assert stats.last_updated is not None


def test_coingecko_global_without_data_is_decode_failure():
    with pytest.raises(DecodeFailure):
        coingecko.normalize_global_data({"status": {"error_code": 429}})


@pytest.mark.asyncio
async def test_global_fallback_stub_always_fails():
    with pytest.raises(TransportFailure):
        await fetch_global_fallback()
