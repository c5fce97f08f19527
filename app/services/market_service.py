"""
Owner of the market state: cold start, coordinated refreshes, favorites and
projection intents. The only writer of MarketState.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.config.settings import Settings, get_settings
from app.schemas.market import (
    MarketSegment,
    MarketSnapshot,
    NormalizedCoin,
    NormalizedGlobalStats,
    ProjectionState,
    SortDirection,
    SortField,
)
from app.services import coingecko, coinpaprika, global_fallback
from app.services.favorites import FavoritesStore, normalize_symbol
from app.services.fetch_outcome import FallbackSuccess, Failure, FetchOutcome, Success, TimedOut
from app.services.kv_store import KeyValueStore
from app.services.live_prices import LiveUpdates, enrich_live_prices
from app.services.market_state import MarketState
from app.services.projection import project, toggle_sort
from app.services.race import FallbackRaceCoordinator
from app.services.snapshot_cache import SnapshotCache
from app.utils.time import utcnow

logger = logging.getLogger("coin_market.service")

PRIMARY_COIN_TAG = "CoinGecko"

COIN_TIMEOUT_MESSAGE = "Coin data request timed out. Using fallback/cached."
GLOBAL_FALLBACK_MESSAGE = "Using fallback aggregator for global data."
GLOBAL_TIMEOUT_MESSAGE = "Global data request timed out."

CoinAdapter = Callable[[], Awaitable[list[NormalizedCoin]]]
GlobalAdapter = Callable[[], Awaitable[NormalizedGlobalStats]]
Enricher = Callable[[list[NormalizedCoin]], Awaitable[LiveUpdates]]


class MarketService:
    def __init__(
        self,
        *,
        store: KeyValueStore,
        coin_primary: CoinAdapter,
        global_primary: GlobalAdapter,
        coin_fallback: Optional[CoinAdapter] = None,
        coin_fallback_tag: str = coinpaprika.SOURCE_TAG,
        global_fallback: Optional[GlobalAdapter] = None,
        global_fallback_tag: str = "fallback aggregator",
        enricher: Optional[Enricher] = None,
        settings: Optional[Settings] = None,
    ):
        s = settings or get_settings()
        self.state = MarketState()
        self.cache = SnapshotCache(store)
        self.favorites = FavoritesStore(store)
        self._enricher = enricher

        self.coin_fetch: FallbackRaceCoordinator[list[NormalizedCoin]] = FallbackRaceCoordinator(
            "coins",
            coin_primary,
            fallback=coin_fallback,
            fallback_tag=coin_fallback_tag,
            timeout_s=s.COIN_TIMEOUT_SECONDS,
            fallback_timeout_s=s.FALLBACK_TIMEOUT_SECONDS,
            on_outcome=self._commit_coin_outcome,
        )
        self.global_fetch: FallbackRaceCoordinator[NormalizedGlobalStats] = FallbackRaceCoordinator(
            "global",
            global_primary,
            fallback=global_fallback,
            fallback_tag=global_fallback_tag,
            timeout_s=s.GLOBAL_TIMEOUT_SECONDS,
            fallback_timeout_s=s.FALLBACK_TIMEOUT_SECONDS,
            on_outcome=self._commit_global_outcome,
        )

    # ---------- lifecycle ----------

    async def start(self) -> MarketSnapshot:
        """Cold start from disk (or the seed list) before any network activity."""
        await self.favorites.load()
        coins, source = await self.cache.load_or_seed()
        logger.info("cold start | source=%s | coins=%d | favorites=%d", source, len(coins), len(self.favorites.symbols()))
        return self._publish(coins=coins, coin_source=source)

    async def close(self) -> None:
        await self.coin_fetch.aclose()
        await self.global_fetch.aclose()

    # ---------- refresh intents ----------

    async def refresh_coins(self) -> FetchOutcome:
        return await self.coin_fetch.run()

    async def refresh_global(self) -> FetchOutcome:
        return await self.global_fetch.run()

    async def refresh_all(self) -> None:
        await self.refresh_coins()
        await self.refresh_global()
        if self._enricher is not None:
            await self.enrich_live_prices()

    async def enrich_live_prices(self) -> MarketSnapshot:
        if self._enricher is None:
            return self.state.snapshot()

        started = {c.symbol: c for c in self.state.coins}
        updates = await self._enricher(list(started.values()))

        coins = []
        for c in self.state.coins:
            update = updates.get(c.symbol)
            before = started.get(c.symbol)
            if update and before is not None:
                # a coin commit that landed meanwhile wins over live values fetched before it
                update = {k: v for k, v in update.items() if getattr(c, k) == getattr(before, k)}
            coins.append(c.model_copy(update=update) if update else c)

        logger.info("live prices applied | coins=%d", len(updates))
        return self._publish(coins=coins)

    # ---------- user intents ----------

    async def toggle_favorite(self, symbol: str) -> bool:
        is_fav = await self.favorites.toggle(symbol)
        logger.info("favorite toggled | %s -> %s", normalize_symbol(symbol), is_fav)
        self._publish()
        return is_fav

    def set_search(self, text: str) -> MarketSnapshot:
        return self._publish(projection=self.state.projection.model_copy(update={"search_text": text}))

    def set_segment(self, segment: MarketSegment) -> MarketSnapshot:
        return self._publish(projection=self.state.projection.model_copy(update={"segment": segment}))

    def toggle_sort(self, field: SortField) -> MarketSnapshot:
        return self._publish(projection=toggle_sort(self.state.projection, field))

    def projected(
        self,
        *,
        search_text: Optional[str] = None,
        segment: Optional[MarketSegment] = None,
        sort_field: Optional[SortField] = None,
        sort_direction: Optional[SortDirection] = None,
    ) -> list[NormalizedCoin]:
        """Projection with one-off overrides; current state is left untouched."""
        overrides = {
            "search_text": search_text,
            "segment": segment,
            "sort_field": sort_field,
            "sort_direction": sort_direction,
        }
        state: ProjectionState = self.state.projection.model_copy(
            update={k: v for k, v in overrides.items() if v is not None}
        )
        return project(self.state.coins, self.favorites.symbols(), state)

    def snapshot(self) -> MarketSnapshot:
        return self.state.snapshot()

    # ---------- commit steps (run inside the coordinator's guarded task) ----------

    async def _commit_coin_outcome(self, outcome: FetchOutcome) -> None:
        changes: dict = {}

        if isinstance(outcome, Success):
            try:
                await self.cache.save(outcome.payload)
            except SQLAlchemyError:
                logger.exception("coin snapshot write failed")
            changes.update(coins=outcome.payload, coin_source=PRIMARY_COIN_TAG, coin_error=None)
        elif isinstance(outcome, FallbackSuccess):
            changes.update(
                coins=outcome.payload,
                coin_source=outcome.source_tag,
                coin_error=f"Using fallback from {outcome.source_tag}.",
            )
        elif isinstance(outcome, TimedOut):
            changes.update(coin_error=COIN_TIMEOUT_MESSAGE)
        elif isinstance(outcome, Failure):
            changes.update(coin_error=f"Coin data error: {outcome.reason}.")

        changes["last_updated"] = utcnow()
        self._publish(**changes)

    async def _commit_global_outcome(self, outcome: FetchOutcome) -> None:
        changes: dict = {"global_last_updated": utcnow()}

        if isinstance(outcome, Success):
            changes.update(global_stats=outcome.payload, global_error=None)
        elif isinstance(outcome, FallbackSuccess):
            changes.update(global_stats=outcome.payload, global_error=GLOBAL_FALLBACK_MESSAGE)
        elif isinstance(outcome, TimedOut):
            changes.update(global_error=GLOBAL_TIMEOUT_MESSAGE)
        elif isinstance(outcome, Failure):
            changes.update(global_error=f"Global data error: {outcome.reason}.")

        self.state.apply(**changes)

    def _publish(self, **changes) -> MarketSnapshot:
        """Re-merge favorites and recompute the projection, then write state once."""
        coins = changes.pop("coins", self.state.coins)
        projection = changes.pop("projection", self.state.projection)
        favorites = self.favorites.symbols()

        merged = self.favorites.merge_into(coins)
        return self.state.apply(
            coins=merged,
            filtered_coins=project(merged, favorites, projection),
            projection=projection,
            favorites=favorites,
            **changes,
        )


def create_market_service(store: Optional[KeyValueStore] = None, settings: Optional[Settings] = None) -> MarketService:
    """Production wiring: CoinGecko primaries, CoinPaprika coin fallback, global fallback only when enabled."""
    s = settings or get_settings()

    enricher: Optional[Enricher] = None
    if s.LIVE_PRICES_ENABLED:
        async def enricher(coins: list[NormalizedCoin]) -> LiveUpdates:
            return await enrich_live_prices(coins, concurrency=s.LIVE_PRICES_CONCURRENCY)

    return MarketService(
        store=store or KeyValueStore(),
        coin_primary=coingecko.fetch_coin_markets,
        global_primary=coingecko.fetch_global_stats,
        coin_fallback=coinpaprika.fetch_tickers,
        coin_fallback_tag=coinpaprika.SOURCE_TAG,
        global_fallback=global_fallback.fetch_global_fallback if s.GLOBAL_FALLBACK_ENABLED else None,
        global_fallback_tag=global_fallback.SOURCE_TAG,
        enricher=enricher,
        settings=s,
    )
