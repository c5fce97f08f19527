from __future__ import annotations

from app.schemas.market import MarketSegment, ProjectionState, SortDirection, SortField
from app.services.projection import project, toggle_sort
from app.tests.helpers import coin


COINS = [
    coin("BTC", price=30000, change=5.0, volume=900, name="Bitcoin"),
    coin("ETH", price=1800, change=-1.5, volume=500, name="Ethereum"),
    coin("BTT", price=0.001, change=-3.0, volume=50, name="BitTorrent"),
    coin("usdt", price=1.0, change=0.0, volume=700, name="Tether"),
    coin("WBTC", price=29950, change=4.0, volume=20, name="Wrapped Bitcoin"),
]


def _symbols(rows) -> list[str]:
    return [c.symbol for c in rows]


def test_default_state_keeps_everything_in_order():
    assert _symbols(project(COINS, [], ProjectionState())) == ["BTC", "ETH", "BTT", "USDT", "WBTC"]


def test_search_is_case_insensitive_over_symbol_and_name():
    state = ProjectionState(search_text="BiT")
    assert _symbols(project(COINS, [], state)) == ["BTC", "BTT", "WBTC"]

    state = ProjectionState(search_text="tether")
    assert _symbols(project(COINS, [], state)) == ["USDT"]


def test_search_text_is_matched_as_typed():
    assert _symbols(project(COINS, [], ProjectionState(search_text="bitcoin "))) == []
    assert _symbols(project(COINS, [], ProjectionState(search_text=" bitcoin"))) == ["WBTC"]


def test_segments():
    assert _symbols(project(COINS, [], ProjectionState(segment=MarketSegment.GAINERS))) == ["BTC", "WBTC"]
    assert _symbols(project(COINS, [], ProjectionState(segment=MarketSegment.LOSERS))) == ["ETH", "BTT"]
    assert _symbols(project(COINS, ["eth", "USDT"], ProjectionState(segment=MarketSegment.FAVORITES))) == ["ETH", "USDT"]


def test_zero_change_is_neither_gainer_nor_loser():
    gainers = project(COINS, [], ProjectionState(segment=MarketSegment.GAINERS))
    losers = project(COINS, [], ProjectionState(segment=MarketSegment.LOSERS))
    assert "USDT" not in _symbols(gainers) + _symbols(losers)


def test_search_and_gainers_compose():
    state = ProjectionState(search_text="bt", segment=MarketSegment.GAINERS)
    rows = project(COINS, [], state)
    assert _symbols(rows) == ["BTC", "WBTC"]
    assert all("bt" in (c.symbol + c.name).lower() and c.daily_change > 0 for c in rows)


def test_sort_by_numeric_fields():
    asc = ProjectionState(sort_field=SortField.PRICE)
    assert _symbols(project(COINS, [], asc)) == ["BTT", "USDT", "ETH", "WBTC", "BTC"]

    desc = ProjectionState(sort_field=SortField.VOLUME, sort_direction=SortDirection.DESC)
    assert _symbols(project(COINS, [], desc)) == ["BTC", "USDT", "ETH", "BTT", "WBTC"]


def test_sort_by_symbol_ignores_case():
    rows = [coin("eth"), coin("Btc"), coin("ada")]
    state = ProjectionState(sort_field=SortField.SYMBOL)
    assert _symbols(project(rows, [], state)) == ["ADA", "BTC", "ETH"]


def test_sort_is_stable_for_ties_in_both_directions():
    rows = [coin("AAA", change=1.0), coin("BBB", change=2.0), coin("CCC", change=1.0)]
    asc = ProjectionState(sort_field=SortField.DAILY_CHANGE)
    desc = ProjectionState(sort_field=SortField.DAILY_CHANGE, sort_direction=SortDirection.DESC)
    assert _symbols(project(rows, [], asc)) == ["AAA", "CCC", "BBB"]
    assert _symbols(project(rows, [], desc)) == ["BBB", "AAA", "CCC"]


def test_projection_is_deterministic():
    state = ProjectionState(search_text="b", sort_field=SortField.DAILY_CHANGE, sort_direction=SortDirection.DESC)
    assert project(COINS, ["BTC"], state) == project(COINS, ["BTC"], state)


def test_toggle_sort_flips_then_returns_to_ascending():
    start = ProjectionState()
    first = toggle_sort(start, SortField.PRICE)
    assert (first.sort_field, first.sort_direction) == (SortField.PRICE, SortDirection.ASC)

    second = toggle_sort(first, SortField.PRICE)
    assert second.sort_direction == SortDirection.DESC

    third = toggle_sort(second, SortField.PRICE)
    assert third.sort_direction == SortDirection.ASC
    assert project(COINS, [], third) == project(COINS, [], first)


def test_toggle_sort_new_field_resets_direction():
    state = ProjectionState(sort_field=SortField.PRICE, sort_direction=SortDirection.DESC)
    changed = toggle_sort(state, SortField.VOLUME)
    assert (changed.sort_field, changed.sort_direction) == (SortField.VOLUME, SortDirection.ASC)
