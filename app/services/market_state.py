from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from app.schemas.market import MarketSnapshot, NormalizedCoin, NormalizedGlobalStats, ProjectionState

logger = logging.getLogger("coin_market.state")

Listener = Callable[[MarketSnapshot], None]

_FIELDS = frozenset(
    {
        "coins",
        "filtered_coins",
        "global_stats",
        "projection",
        "favorites",
        "coin_source",
        "coin_error",
        "global_error",
        "last_updated",
        "global_last_updated",
    }
)


class MarketState:
    """
    Observable market state. Readable by anyone; written only through
    ``apply`` by the MarketService that owns it, on the event loop thread.
    Every ``apply`` bumps ``version`` and pushes a snapshot to listeners.
    """

    def __init__(self) -> None:
        self.coins: list[NormalizedCoin] = []
        self.filtered_coins: list[NormalizedCoin] = []
        self.global_stats: Optional[NormalizedGlobalStats] = None
        self.projection = ProjectionState()
        self.favorites: list[str] = []
        self.coin_source = "none"
        self.coin_error: Optional[str] = None
        self.global_error: Optional[str] = None
        self.last_updated: Optional[datetime] = None
        self.global_last_updated: Optional[datetime] = None
        self.version = 0
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, **changes: Any) -> MarketSnapshot:
        unknown = set(changes) - _FIELDS
        if unknown:
            raise AttributeError(f"unknown market state fields: {sorted(unknown)}")

        for name, value in changes.items():
            setattr(self, name, value)
        self.version += 1

        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("market state listener failed")
        return snap

    def snapshot(self) -> MarketSnapshot:
        return MarketSnapshot(
            version=self.version,
            coins=list(self.coins),
            filtered_coins=list(self.filtered_coins),
            global_stats=self.global_stats,
            projection=self.projection,
            favorites=list(self.favorites),
            coin_source=self.coin_source,
            coin_error=self.coin_error,
            global_error=self.global_error,
            last_updated=self.last_updated,
            global_last_updated=self.global_last_updated,
        )
