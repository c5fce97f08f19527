from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    return float(value)


def parse_optional_float(value: str | None, default: Optional[float]) -> Optional[float]:
    """
    Unset -> default, empty string / "none" -> None (unbounded), otherwise float.
    """
    if value is None:
        return default
    v = value.strip().lower()
    if v in {"", "none", "off"}:
        return None
    return float(v)


@dataclass(frozen=True)
class Settings:
    MARKET_DB_URL: str
    COIN_TIMEOUT_SECONDS: float
    GLOBAL_TIMEOUT_SECONDS: float
    FALLBACK_TIMEOUT_SECONDS: Optional[float]
    COIN_REFRESH_SECONDS: float
    GLOBAL_REFRESH_SECONDS: float
    AUTO_REFRESH_ENABLED: bool
    GLOBAL_FALLBACK_ENABLED: bool
    HTTP_TIMEOUT_SECONDS: float
    LIVE_PRICES_ENABLED: bool
    LIVE_PRICES_CONCURRENCY: int
    LOG_LEVEL: str
    LOG_JSON: bool
    API_HOST: str
    API_PORT: int

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            MARKET_DB_URL=os.getenv("MARKET_DB_URL", "sqlite+aiosqlite:///./market.db"),
            COIN_TIMEOUT_SECONDS=parse_float(os.getenv("COIN_TIMEOUT_SECONDS"), 3.0),
            GLOBAL_TIMEOUT_SECONDS=parse_float(os.getenv("GLOBAL_TIMEOUT_SECONDS"), 3.0),
            FALLBACK_TIMEOUT_SECONDS=parse_optional_float(os.getenv("FALLBACK_TIMEOUT_SECONDS"), 10.0),
            COIN_REFRESH_SECONDS=parse_float(os.getenv("COIN_REFRESH_SECONDS"), 60.0),
            GLOBAL_REFRESH_SECONDS=parse_float(os.getenv("GLOBAL_REFRESH_SECONDS"), 180.0),
            AUTO_REFRESH_ENABLED=parse_bool(os.getenv("AUTO_REFRESH_ENABLED"), True),
            GLOBAL_FALLBACK_ENABLED=parse_bool(os.getenv("GLOBAL_FALLBACK_ENABLED"), False),
            HTTP_TIMEOUT_SECONDS=parse_float(os.getenv("HTTP_TIMEOUT_SECONDS"), 10.0),
            LIVE_PRICES_ENABLED=parse_bool(os.getenv("LIVE_PRICES_ENABLED"), False),
            LIVE_PRICES_CONCURRENCY=parse_int(os.getenv("LIVE_PRICES_CONCURRENCY"), 4),
            LOG_LEVEL=(os.getenv("LOG_LEVEL") or "INFO").upper(),
            LOG_JSON=parse_bool(os.getenv("LOG_JSON"), False),
            API_HOST=os.getenv("API_HOST", "127.0.0.1"),
            API_PORT=parse_int(os.getenv("API_PORT"), 8000),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
