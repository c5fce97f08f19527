from __future__ import annotations

import dataclasses

from app.config.settings import Settings
from app.schemas.market import NormalizedCoin


def make_settings(**overrides) -> Settings:
    base = Settings.from_env()
    defaults = {
        "MARKET_DB_URL": "sqlite+aiosqlite:///:memory:",
        "COIN_TIMEOUT_SECONDS": 0.2,
        "GLOBAL_TIMEOUT_SECONDS": 0.2,
        "FALLBACK_TIMEOUT_SECONDS": 1.0,
        "AUTO_REFRESH_ENABLED": False,
        "GLOBAL_FALLBACK_ENABLED": False,
        "LIVE_PRICES_ENABLED": False,
    }
    defaults.update(overrides)
    return dataclasses.replace(base, **defaults)


def coin(symbol: str, price: float = 1.0, change: float = 0.0, volume: float = 0.0, name: str | None = None) -> NormalizedCoin:
    return NormalizedCoin(
        symbol=symbol,
        name=name or symbol.title(),
        price=price,
        daily_change=change,
        volume=volume,
    )
