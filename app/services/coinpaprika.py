"""CoinPaprika tickers: fallback source for the coin list (no sparklines, no images)."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from app.schemas.market import NormalizedCoin
from app.schemas.providers import CoinPaprikaTicker
from app.services.errors import DecodeFailure
from app.services.http_client import fetch_json
from app.services.normalize import dedupe_by_symbol

COINPAPRIKA_TICKERS_URL = "https://api.coinpaprika.com/v1/tickers"
SOURCE = "coinpaprika"
SOURCE_TAG = "CoinPaprika"

_tickers_adapter = TypeAdapter(list[CoinPaprikaTicker])


def _rank_key(ticker: CoinPaprikaTicker) -> tuple[int, int]:
    # paprika reports unranked assets as rank 0 or null
    if ticker.rank and ticker.rank > 0:
        return (0, ticker.rank)
    return (1, 0)


def normalize_tickers(raw: Any, limit: Optional[int] = None) -> list[NormalizedCoin]:
    """Every ticker in rank order, unranked last. ``limit`` caps the list when given."""
    try:
        tickers = _tickers_adapter.validate_python(raw)
        tickers = sorted(tickers, key=_rank_key)

        coins = []
        for t in tickers:
            usd = (t.quotes or {}).get("USD")
            coins.append(
                NormalizedCoin(
                    symbol=t.symbol,
                    name=t.name,
                    price=(usd.price if usd else None) or 0.0,
                    daily_change=(usd.percent_change_24h if usd else None) or 0.0,
                    volume=(usd.volume_24h if usd else None) or 0.0,
                    sparkline=[],
                    image_url=None,
                )
            )
    except ValidationError as exc:
        raise DecodeFailure(f"tickers schema mismatch ({exc.error_count()} errors)", source=SOURCE) from exc

    coins = dedupe_by_symbol(coins)
    return coins if limit is None else coins[:limit]


async def fetch_tickers(client: Optional[httpx.AsyncClient] = None) -> list[NormalizedCoin]:
    raw = await fetch_json(COINPAPRIKA_TICKERS_URL, source=SOURCE, params={"quotes": "USD"}, client=client)
    return normalize_tickers(raw)
