"""
Secondary source for global market stats.

No second aggregator is wired up yet; the adapter exists so one can be dropped
in without touching the coordinator. It is not registered by default, so a
global primary timeout surfaces as TimedOut rather than as a fallback failure.
"""

from __future__ import annotations

from typing import Optional

import httpx

from app.schemas.market import NormalizedGlobalStats
from app.services.errors import TransportFailure

SOURCE = "global-fallback"
SOURCE_TAG = "fallback aggregator"


async def fetch_global_fallback(client: Optional[httpx.AsyncClient] = None) -> NormalizedGlobalStats:
    raise TransportFailure("no secondary global-stats provider configured", source=SOURCE)
