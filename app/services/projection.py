"""
Search -> segment -> sort over the full coin set.

Pure and deterministic: the visible list is always recomputed from
(coins, favorites, ProjectionState) and never stored on its own.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from app.schemas.market import (
    MarketSegment,
    NormalizedCoin,
    ProjectionState,
    SortDirection,
    SortField,
)

_SORT_KEYS: dict[SortField, Callable[[NormalizedCoin], Any]] = {
    SortField.SYMBOL: lambda c: c.symbol.casefold(),
    SortField.PRICE: lambda c: c.price,
    SortField.DAILY_CHANGE: lambda c: c.daily_change,
    SortField.VOLUME: lambda c: c.volume,
}


def _matches_search(coin: NormalizedCoin, needle: str) -> bool:
    return needle in coin.symbol.casefold() or needle in coin.name.casefold()


def _in_segment(coin: NormalizedCoin, segment: MarketSegment, favorites: frozenset[str]) -> bool:
    if segment == MarketSegment.FAVORITES:
        return coin.is_favorite or coin.symbol in favorites
    if segment == MarketSegment.GAINERS:
        return coin.daily_change > 0
    if segment == MarketSegment.LOSERS:
        return coin.daily_change < 0
    return True


def project(
    coins: Iterable[NormalizedCoin],
    favorites: Iterable[str],
    state: ProjectionState,
) -> list[NormalizedCoin]:
    fav = frozenset(s.upper() for s in favorites)
    needle = state.search_text.casefold()

    result = [c for c in coins if not needle or _matches_search(c, needle)]
    result = [c for c in result if _in_segment(c, state.segment, fav)]

    key = _SORT_KEYS.get(state.sort_field)
    if key is None:
        return result
    # sorted() stays stable with reverse=True
    return sorted(result, key=key, reverse=state.sort_direction == SortDirection.DESC)


def toggle_sort(state: ProjectionState, field: SortField) -> ProjectionState:
    """Same field flips direction; a new field starts ascending."""
    if state.sort_field == field:
        flipped = SortDirection.DESC if state.sort_direction == SortDirection.ASC else SortDirection.ASC
        return state.model_copy(update={"sort_direction": flipped})
    return state.model_copy(update={"sort_field": field, "sort_direction": SortDirection.ASC})
