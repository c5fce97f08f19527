"""Wire models for the upstream providers. Each adapter decodes into exactly one of these."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


# ---------- CoinGecko ----------

class CoinGeckoSparkline(BaseModel):
    price: list[Optional[float]] = Field(default_factory=list)


class CoinGeckoMarketData(BaseModel):
    id: str
    symbol: str
    name: str
    image: Optional[str] = None
    current_price: Optional[float] = None
    total_volume: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    sparkline_in_7d: Optional[CoinGeckoSparkline] = None


class CoinGeckoGlobalData(BaseModel):
    active_cryptocurrencies: Optional[int] = None
    markets: Optional[int] = None
    total_market_cap: dict[str, float] = Field(default_factory=dict)
    total_volume: dict[str, float] = Field(default_factory=dict)
    market_cap_percentage: dict[str, float] = Field(default_factory=dict)
    market_cap_change_percentage_24h_usd: Optional[float] = None
    updated_at: Optional[int] = None


class CoinGeckoGlobalResponse(BaseModel):
    data: CoinGeckoGlobalData


# ---------- CoinPaprika ----------

class PaprikaQuote(BaseModel):
    price: Optional[float] = None
    volume_24h: Optional[float] = None
    market_cap: Optional[float] = None
    percent_change_24h: Optional[float] = None


class CoinPaprikaTicker(BaseModel):
    id: Optional[str] = None
    symbol: str
    name: str
    rank: Optional[int] = None
    quotes: Optional[dict[str, PaprikaQuote]] = None


# ---------- Coinbase / Binance (live price enrichment) ----------

class CoinbaseSpotData(BaseModel):
    base: Optional[str] = None
    currency: Optional[str] = None
    amount: float


class CoinbaseSpotResponse(BaseModel):
    data: CoinbaseSpotData
