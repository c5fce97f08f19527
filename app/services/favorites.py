from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from app.schemas.market import NormalizedCoin
from app.services.errors import CacheCorrupt
from app.services.kv_store import KeyValueStore

logger = logging.getLogger("coin_market.favorites")

FAVORITES_KEY = "favoriteCoinSymbols"


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


class FavoritesStore:
    """
    Durable set of favorite symbols. Independent of the coin set: a favorite
    survives fetches where its coin is missing.
    """

    def __init__(self, store: KeyValueStore, key: str = FAVORITES_KEY):
        self._store = store
        self._key = key
        self._symbols: frozenset[str] = frozenset()

    async def load(self) -> frozenset[str]:
        try:
            raw = await self._store.get_json(self._key)
        except (CacheCorrupt, SQLAlchemyError) as exc:
            logger.warning("favorites unreadable, starting empty | %s", exc)
            raw = None

        if isinstance(raw, list):
            self._symbols = frozenset(normalize_symbol(s) for s in raw if isinstance(s, str) and s.strip())
        else:
            self._symbols = frozenset()
        return self._symbols

    def is_favorite(self, symbol: str) -> bool:
        return normalize_symbol(symbol) in self._symbols

    def symbols(self) -> list[str]:
        return sorted(self._symbols)

    async def toggle(self, symbol: str) -> bool:
        """Flip ``symbol`` and write through. Returns the new favorite state."""
        key = normalize_symbol(symbol)
        if not key:
            raise ValueError("symbol must not be empty")

        updated = set(self._symbols)
        if key in updated:
            updated.remove(key)
        else:
            updated.add(key)

        # in-memory set only changes once the write succeeded
        await self._store.set_json(self._key, sorted(updated))
        self._symbols = frozenset(updated)
        return key in self._symbols

    def merge_into(self, coins: Iterable[NormalizedCoin]) -> list[NormalizedCoin]:
        out = []
        for coin in coins:
            flag = coin.symbol in self._symbols
            out.append(coin if coin.is_favorite == flag else coin.model_copy(update={"is_favorite": flag}))
        return out
