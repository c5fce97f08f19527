"""
Optional live refresh of spot prices (Coinbase) and sparklines (Binance 1h klines).

Per-coin failures leave that coin untouched; the pass never fails as a whole.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.config.settings import get_settings
from app.schemas.market import NormalizedCoin
from app.schemas.providers import CoinbaseSpotResponse
from app.services.errors import DecodeFailure, MarketDataError
from app.services.http_client import fetch_json

logger = logging.getLogger("coin_market.live_prices")

COINBASE_SPOT_URL = "https://api.coinbase.com/v2/prices/{symbol}-USD/spot"
BINANCE_KLINES_URL = "https://api.binance.com/api/v3/klines"

SPARKLINE_INTERVAL = "1h"
SPARKLINE_POINTS = 168  # 7 days of hourly closes


async def fetch_spot_price(symbol: str, client: Optional[httpx.AsyncClient] = None) -> float:
    raw = await fetch_json(COINBASE_SPOT_URL.format(symbol=symbol.upper()), source="coinbase", client=client)
    try:
        return CoinbaseSpotResponse.model_validate(raw).data.amount
    except ValidationError as exc:
        raise DecodeFailure("spot schema mismatch", source="coinbase") from exc


def _closes_from_klines(raw: Any) -> list[float]:
    if not isinstance(raw, list):
        raise DecodeFailure("klines payload is not a list", source="binance")
    closes: list[float] = []
    for row in raw:
        try:
            closes.append(float(row[4]))
        except (TypeError, ValueError, IndexError) as exc:
            raise DecodeFailure(f"bad kline row: {row!r}", source="binance") from exc
    return closes


async def fetch_sparkline(symbol: str, client: Optional[httpx.AsyncClient] = None) -> list[float]:
    params = {
        "symbol": f"{symbol.upper()}USDT",
        "interval": SPARKLINE_INTERVAL,
        "limit": SPARKLINE_POINTS,
    }
    raw = await fetch_json(BINANCE_KLINES_URL, source="binance", params=params, client=client)
    return _closes_from_klines(raw)


LiveUpdates = dict[str, dict[str, Any]]


async def _fetch_updates(symbol: str, client: Optional[httpx.AsyncClient]) -> dict[str, Any]:
    """Only the fields that were actually fetched; a failed call contributes nothing."""
    update: dict[str, Any] = {}

    try:
        update["price"] = await fetch_spot_price(symbol, client=client)
    except MarketDataError as exc:
        logger.debug("spot price skipped | %s | %s", symbol, exc)

    try:
        spark = await fetch_sparkline(symbol, client=client)
        if spark:
            update["sparkline"] = spark
    except MarketDataError as exc:
        logger.debug("sparkline skipped | %s | %s", symbol, exc)

    return update


async def enrich_live_prices(
    coins: list[NormalizedCoin],
    *,
    concurrency: int = 4,
    client: Optional[httpx.AsyncClient] = None,
) -> LiveUpdates:
    """
    Fetch live price/sparkline for ``coins``. Returns ``{symbol: {field: value}}``
    holding fresh fields only; symbols with nothing fetched are absent.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=get_settings().HTTP_TIMEOUT_SECONDS) as own:
            return await enrich_live_prices(coins, concurrency=concurrency, client=own)

    sem = asyncio.Semaphore(max(1, concurrency))
    symbols = [c.symbol for c in coins]

    async def _guarded(symbol: str) -> dict[str, Any]:
        async with sem:
            return await _fetch_updates(symbol, client)

    results = await asyncio.gather(*(_guarded(s) for s in symbols))
    return {symbol: update for symbol, update in zip(symbols, results) if update}
