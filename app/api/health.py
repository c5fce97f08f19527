# app/api/health.py
from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from app.config.settings import get_settings
from app.db import session as db_session
from app.utils.time import iso_z, utcnow

router = APIRouter(tags=["health"])

APP_STARTED_AT = time.time()

# data is stale once older than this many refresh periods
STALL_MULTIPLIER_DEFAULT = 2.5


def _now_meta() -> Dict[str, Any]:
    now_ts = time.time()
    return {
        "now_unix": int(now_ts),
        "now_iso": iso_z(utcnow()),
        "uptime_s": int(now_ts - APP_STARTED_AT),
    }


async def _check_db() -> Dict[str, Any]:
    t0 = time.time()
    try:
        async with db_session.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"ok": True, "latency_ms": int((time.time() - t0) * 1000)}
    except Exception as e:
        return {
            "ok": False,
            "latency_ms": int((time.time() - t0) * 1000),
            "error": str(e),
        }


def _freshness(last: Optional[datetime], period_s: float, error: Optional[str]) -> Dict[str, Any]:
    allowed_age_s = period_s * STALL_MULTIPLIER_DEFAULT
    age_s = (utcnow() - last).total_seconds() if last else None
    return {
        "last_updated_iso": iso_z(last),
        "age_s": age_s,
        "allowed_age_s": allowed_age_s,
        "stale": age_s is not None and age_s > allowed_age_s,
        "advisory": error,
    }


def _check_market(request: Request) -> Dict[str, Any]:
    service = getattr(request.app.state, "market", None)
    if service is None:
        return {"ok": False, "error": "market service not started"}

    settings = get_settings()
    snap = service.snapshot()
    return {
        "ok": bool(snap.coins),
        "coin_source": snap.coin_source,
        "coins": len(snap.coins),
        "coin_data": _freshness(snap.last_updated, settings.COIN_REFRESH_SECONDS, snap.coin_error),
        "global_data": _freshness(snap.global_last_updated, settings.GLOBAL_REFRESH_SECONDS, snap.global_error),
        "in_flight": {
            "coins": service.coin_fetch.in_flight,
            "global": service.global_fetch.in_flight,
        },
        "fallback_configured": {
            "coins": service.coin_fetch.has_fallback,
            "global": service.global_fetch.has_fallback,
        },
    }


def _check_scheduler(request: Request) -> Dict[str, Any]:
    handle = getattr(request.app.state, "scheduler", None)
    if handle is None:
        return {"ok": True, "running": False, "detail": "auto refresh disabled", "per_job": {}}
    return handle.info()


@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request, response: Response):
    checks = {
        "db": await _check_db(),
        "market": _check_market(request),
        "scheduler": _check_scheduler(request),
    }

    degraded_reasons = []
    if not checks["db"].get("ok", False):
        degraded_reasons.append("db_unhealthy")
    if not checks["market"].get("ok", False):
        degraded_reasons.append("market_unavailable")
    if not checks["scheduler"].get("ok", False):
        degraded_reasons.append("scheduler_unavailable")

    # stale data is reported, not fatal: the last good set is still served
    market = checks["market"]
    stale = [k for k in ("coin_data", "global_data") if (market.get(k) or {}).get("stale")]

    payload: Dict[str, Any] = {
        **_now_meta(),
        "checks": checks,
        "stale": stale,
        "degraded": bool(degraded_reasons),
        "degraded_reasons": degraded_reasons,
        "status": "degraded" if degraded_reasons else "ok",
    }
    if degraded_reasons:
        response.status_code = 503
    return payload


@router.get("/health")
async def health(request: Request, response: Response):
    return await ready(request, response)
