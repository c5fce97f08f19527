"""Helpers for interacting with the public CoinGecko API."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from app.schemas.market import NormalizedCoin, NormalizedGlobalStats
from app.schemas.providers import CoinGeckoGlobalResponse, CoinGeckoMarketData
from app.services.errors import DecodeFailure
from app.services.http_client import fetch_json
from app.services.normalize import dedupe_by_symbol
from app.utils.time import from_epoch, utcnow


COINGECKO_URL = "https://api.coingecko.com/api/v3/coins/markets"
COINGECKO_GLOBAL_URL = "https://api.coingecko.com/api/v3/global"
SOURCE = "coingecko"

PAGE_SIZE = 100

_markets_adapter = TypeAdapter(list[CoinGeckoMarketData])


async def fetch_raw_market_data(
    vs_currency: str = "usd",
    order: str = "market_cap_desc",
    per_page: int = PAGE_SIZE,
    page: int = 1,
    sparkline: bool = True,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """Return the raw CoinGecko markets payload (undecoded JSON)."""

    params = {
        "vs_currency": vs_currency,
        "order": order,
        "per_page": per_page,
        "page": page,
        "sparkline": str(sparkline).lower(),
    }
    return await fetch_json(COINGECKO_URL, source=SOURCE, params=params, client=client)


def normalize_market_data(raw: Any) -> list[NormalizedCoin]:
    try:
        rows = _markets_adapter.validate_python(raw)
        coins = [
            NormalizedCoin(
                symbol=row.symbol,
                name=row.name,
                price=row.current_price or 0.0,
                daily_change=row.price_change_percentage_24h or 0.0,
                volume=row.total_volume or 0.0,
                sparkline=[p for p in row.sparkline_in_7d.price if p is not None] if row.sparkline_in_7d else [],
                image_url=row.image,
            )
            for row in rows
        ]
    except ValidationError as exc:
        raise DecodeFailure(f"markets schema mismatch ({exc.error_count()} errors)", source=SOURCE) from exc
    return dedupe_by_symbol(coins)


async def fetch_coin_markets(client: Optional[httpx.AsyncClient] = None) -> list[NormalizedCoin]:
    """Primary coin adapter: top 100 by market cap with 7d sparklines."""
    raw = await fetch_raw_market_data(client=client)
    return normalize_market_data(raw)


def normalize_global_data(raw: Any) -> NormalizedGlobalStats:
    try:
        decoded = CoinGeckoGlobalResponse.model_validate(raw)
    except ValidationError as exc:
        raise DecodeFailure(f"global schema mismatch ({exc.error_count()} errors)", source=SOURCE) from exc

    data = decoded.data
    return NormalizedGlobalStats(
        total_market_cap_usd=data.total_market_cap.get("usd", 0.0),
        total_volume_usd=data.total_volume.get("usd", 0.0),
        btc_dominance=data.market_cap_percentage.get("btc", 0.0),
        market_cap_change_24h_usd=data.market_cap_change_percentage_24h_usd,
        active_cryptocurrencies=data.active_cryptocurrencies,
        markets=data.markets,
        last_updated=from_epoch(data.updated_at) or utcnow(),
    )


async def fetch_global_stats(client: Optional[httpx.AsyncClient] = None) -> NormalizedGlobalStats:
    """Primary global adapter."""
    raw = await fetch_json(COINGECKO_GLOBAL_URL, source=SOURCE, client=client)
    return normalize_global_data(raw)
