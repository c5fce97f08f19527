from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from app.schemas.market import (
    MarketSegment,
    MarketSnapshot,
    NormalizedCoin,
    NormalizedGlobalStats,
    SortDirection,
    SortField,
)
from app.services.market_service import MarketService


router = APIRouter(prefix="/market", tags=["market"])


class RefreshResponse(BaseModel):
    outcome: str
    error: Optional[str] = None
    snapshot: MarketSnapshot


class FavoriteToggleResponse(BaseModel):
    symbol: str
    is_favorite: bool
    favorites: list[str]


class ProjectionUpdate(BaseModel):
    search_text: Optional[str] = Field(default=None, max_length=100)
    segment: Optional[MarketSegment] = None


class GlobalResponse(BaseModel):
    global_stats: Optional[NormalizedGlobalStats] = None
    error: Optional[str] = None


def get_market_service(request: Request) -> MarketService:
    service = getattr(request.app.state, "market", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Market service not started")
    return service


@router.get("/state", response_model=MarketSnapshot)
async def get_state(service: MarketService = Depends(get_market_service)):
    return service.snapshot()


@router.get("/coins", response_model=list[NormalizedCoin])
async def get_coins(
    search: Optional[str] = None,
    segment: Optional[MarketSegment] = None,
    sort_field: Optional[SortField] = None,
    sort_direction: Optional[SortDirection] = None,
    service: MarketService = Depends(get_market_service),
):
    """
    Projected coin list. Query params override the stored projection for this
    call only. Example: /market/coins?search=bt&segment=gainers
    """
    return service.projected(
        search_text=search,
        segment=segment,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )


@router.get("/global", response_model=GlobalResponse)
async def get_global(service: MarketService = Depends(get_market_service)):
    snap = service.snapshot()
    return GlobalResponse(global_stats=snap.global_stats, error=snap.global_error)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_coins(service: MarketService = Depends(get_market_service)):
    outcome = await service.refresh_coins()
    snap = service.snapshot()
    return RefreshResponse(outcome=outcome.kind, error=snap.coin_error, snapshot=snap)


@router.post("/refresh/global", response_model=RefreshResponse)
async def refresh_global(service: MarketService = Depends(get_market_service)):
    outcome = await service.refresh_global()
    snap = service.snapshot()
    return RefreshResponse(outcome=outcome.kind, error=snap.global_error, snapshot=snap)


@router.post("/live-prices", response_model=MarketSnapshot)
async def refresh_live_prices(service: MarketService = Depends(get_market_service)):
    return await service.enrich_live_prices()


@router.get("/favorites", response_model=list[str])
async def get_favorites(service: MarketService = Depends(get_market_service)):
    return service.favorites.symbols()


@router.post("/favorites/{symbol}/toggle", response_model=FavoriteToggleResponse)
async def toggle_favorite(symbol: str, service: MarketService = Depends(get_market_service)):
    if not symbol.strip():
        raise HTTPException(status_code=400, detail="symbol must not be empty")

    is_fav = await service.toggle_favorite(symbol)
    return FavoriteToggleResponse(
        symbol=symbol.strip().upper(),
        is_favorite=is_fav,
        favorites=service.favorites.symbols(),
    )


@router.put("/projection", response_model=MarketSnapshot)
async def update_projection(body: ProjectionUpdate, service: MarketService = Depends(get_market_service)):
    snap = service.snapshot()
    if body.search_text is not None:
        snap = service.set_search(body.search_text)
    if body.segment is not None:
        snap = service.set_segment(body.segment)
    return snap


@router.post("/sort/{field}", response_model=MarketSnapshot)
async def toggle_sort(field: SortField, service: MarketService = Depends(get_market_service)):
    return service.toggle_sort(field)
