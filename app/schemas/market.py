"""Pydantic models for the normalized market view shared by every provider."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MarketSegment(str, Enum):
    ALL = "all"
    FAVORITES = "favorites"
    GAINERS = "gainers"
    LOSERS = "losers"


class SortField(str, Enum):
    NONE = "none"
    SYMBOL = "symbol"
    PRICE = "price"
    DAILY_CHANGE = "daily_change"
    VOLUME = "volume"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class NormalizedCoin(BaseModel):
    """Provider-agnostic coin record. ``symbol`` is the business key."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    name: str
    price: float = 0.0
    daily_change: float = Field(0.0, description="24h percent change")
    volume: float = 0.0
    sparkline: list[float] = Field(default_factory=list, description="7d price samples")
    image_url: Optional[str] = None
    is_favorite: bool = False

    @field_validator("symbol", mode="before")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        return str(value).strip().upper()


class NormalizedGlobalStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_market_cap_usd: float = 0.0
    total_volume_usd: float = 0.0
    btc_dominance: float = 0.0
    market_cap_change_24h_usd: Optional[float] = None
    active_cryptocurrencies: Optional[int] = None
    markets: Optional[int] = None
    last_updated: datetime


class ProjectionState(BaseModel):
    """User intent for the visible list. Never holds the projected rows."""

    model_config = ConfigDict(frozen=True)

    search_text: str = ""
    segment: MarketSegment = MarketSegment.ALL
    sort_field: SortField = SortField.NONE
    sort_direction: SortDirection = SortDirection.ASC


class MarketSnapshot(BaseModel):
    """Read-only view of the market state handed to the HTTP layer and listeners."""

    model_config = ConfigDict(frozen=True)

    version: int
    coins: list[NormalizedCoin]
    filtered_coins: list[NormalizedCoin]
    global_stats: Optional[NormalizedGlobalStats] = None
    projection: ProjectionState
    favorites: list[str]
    coin_source: str
    coin_error: Optional[str] = None
    global_error: Optional[str] = None
    last_updated: Optional[datetime] = None
    global_last_updated: Optional[datetime] = None
