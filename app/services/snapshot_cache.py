from __future__ import annotations

import logging
from typing import Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.schemas.market import NormalizedCoin
from app.services.errors import CacheCorrupt
from app.services.kv_store import KeyValueStore
from app.services.normalize import dedupe_by_symbol

logger = logging.getLogger("coin_market.snapshot_cache")

SNAPSHOT_KEY = "cachedMarketData"

# Shown on a first run with no network and no snapshot on disk
SEED_COINS: list[NormalizedCoin] = [
    NormalizedCoin(
        symbol="BTC",
        name="Bitcoin",
        price=28000,
        daily_change=-2.15,
        volume=450_000_000,
        sparkline=[28000, 27950, 27980, 27890, 27850, 27820, 27800],
        image_url="https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
    ),
    NormalizedCoin(
        symbol="ETH",
        name="Ethereum",
        price=1800,
        daily_change=3.44,
        volume=210_000_000,
        sparkline=[1790, 1795, 1802, 1808, 1805, 1810, 1807],
        image_url="https://assets.coingecko.com/coins/images/279/large/ethereum.png",
    ),
    NormalizedCoin(
        symbol="USDT",
        name="Tether",
        price=1.0,
        daily_change=0.0,
        volume=300_000_000,
        sparkline=[1.0, 1.0, 1.0],
        image_url="https://assets.coingecko.com/coins/images/325/large/tether.png",
    ),
    NormalizedCoin(
        symbol="BNB",
        name="Binance Coin",
        price=310,
        daily_change=-1.20,
        volume=120_000_000,
        sparkline=[312, 311, 310, 309, 310, 308, 309],
        image_url="https://assets.coingecko.com/coins/images/825/large/binance-coin-logo.png",
    ),
    NormalizedCoin(
        symbol="RLC",
        name="iExec RLC",
        price=2.05,
        daily_change=1.25,
        volume=12_000_000,
        sparkline=[2.0, 2.01, 2.05, 2.06, 2.03, 2.02, 2.04],
        image_url="https://assets.coingecko.com/coins/images/646/large/rlc.png",
    ),
]

_coins_adapter = TypeAdapter(list[NormalizedCoin])


class SnapshotCache:
    """Last-known-good coin set. Stored without favorite flags; those re-merge on load."""

    def __init__(self, store: KeyValueStore, key: str = SNAPSHOT_KEY):
        self._store = store
        self._key = key

    async def save(self, coins: list[NormalizedCoin]) -> None:
        payload = [c.model_dump(mode="json", exclude={"is_favorite"}) for c in coins]
        await self._store.set_json(self._key, payload)

    async def load(self) -> Optional[list[NormalizedCoin]]:
        """None on miss. A corrupt or unreadable snapshot also counts as a miss."""
        try:
            raw = await self._store.get_json(self._key)
            if raw is None:
                return None
            coins = _coins_adapter.validate_python(raw)
        except (CacheCorrupt, ValidationError, SQLAlchemyError) as exc:
            logger.warning("coin snapshot unreadable, ignoring | %s", exc)
            return None

        coins = dedupe_by_symbol(coins)
        return coins or None

    async def load_or_seed(self) -> tuple[list[NormalizedCoin], str]:
        cached = await self.load()
        if cached is not None:
            return cached, "cache"
        return list(SEED_COINS), "seed"
