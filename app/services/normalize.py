from __future__ import annotations

from typing import Iterable

from app.schemas.market import NormalizedCoin


def dedupe_by_symbol(coins: Iterable[NormalizedCoin]) -> list[NormalizedCoin]:
    """
    Keep the first record per symbol. Providers return rows in rank order,
    so the first occurrence is the one users mean.
    """
    seen: set[str] = set()
    out: list[NormalizedCoin] = []
    for coin in coins:
        if coin.symbol in seen:
            continue
        seen.add(coin.symbol)
        out.append(coin)
    return out
