from __future__ import annotations

import httpx
import pytest

from app.services.errors import DecodeFailure
from app.services.live_prices import enrich_live_prices, fetch_sparkline, fetch_spot_price
from app.tests.helpers import coin


def _kline(close: float) -> list:
    # open time, open, high, low, close, volume, ...
    return [1700000000000, "1.0", "2.0", "0.5", str(close), "100.0", 1700003599999]


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "api.coinbase.com":
        if request.url.path == "/v2/prices/BTC-USD/spot":
            return httpx.Response(200, json={"data": {"base": "BTC", "currency": "USD", "amount": "31000.5"}})
        return httpx.Response(404, json={"errors": [{"id": "not_found"}]})

    if request.url.host == "api.binance.com":
        if request.url.params.get("symbol") == "BTCUSDT":
            return httpx.Response(200, json=[_kline(30000), _kline(30500), _kline(31000)])
        return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})

    return httpx.Response(500)


@pytest.mark.asyncio
async def test_spot_price_parses_string_amount():
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        assert await fetch_spot_price("btc", client=client) == 31000.5


@pytest.mark.asyncio
async def test_sparkline_request_and_closes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return _handler(request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        closes = await fetch_sparkline("BTC", client=client)

    assert seen["params"] == {"symbol": "BTCUSDT", "interval": "1h", "limit": "168"}
    assert closes == [30000.0, 30500.0, 31000.0]


@pytest.mark.asyncio
async def test_malformed_klines_are_decode_failure():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[["short"]]))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(DecodeFailure):
            await fetch_sparkline("BTC", client=client)


@pytest.mark.asyncio
async def test_enrichment_skips_coins_without_live_data():
    coins = [coin("BTC", price=30000), coin("NOPE", price=1.0)]

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        updates = await enrich_live_prices(coins, concurrency=2, client=client)

    assert updates == {"BTC": {"price": 31000.5, "sparkline": [30000.0, 30500.0, 31000.0]}}


@pytest.mark.asyncio
async def test_enrichment_reports_only_fields_that_were_fetched():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.coinbase.com":
            return httpx.Response(503)
        return _handler(request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        updates = await enrich_live_prices([coin("BTC", price=30000)], client=client)

    assert updates == {"BTC": {"sparkline": [30000.0, 30500.0, 31000.0]}}
