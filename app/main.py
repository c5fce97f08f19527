# app/main.py
from __future__ import annotations

import asyncio
import logging

import uvicorn
from fastapi import FastAPI

from app.api.health import router as health_router
from app.api.market import router as market_router

from app.config.logging_config import configure_logging
from app.config.settings import get_settings
from app.db import session as db_session
from app.db.bootstrap import ensure_db_primitives

from app.jobs.scheduler import start_scheduler, stop_scheduler
from app.services.market_service import create_market_service

logger = logging.getLogger("coin_market.main")

app = FastAPI(title="Coin Market Feed")

# Routers
app.include_router(health_router)
app.include_router(market_router)

app.state.market = None
app.state.scheduler = None
app.state.initial_fetch = None


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "Coin Market Feed"}


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    settings = get_settings()

    await ensure_db_primitives(db_session.engine)

    # Cache (or seed) is in place before the first network call
    service = create_market_service(settings=settings)
    await service.start()
    app.state.market = service

    app.state.initial_fetch = asyncio.create_task(service.refresh_all(), name="initial-fetch")

    if settings.AUTO_REFRESH_ENABLED:
        app.state.scheduler = start_scheduler(service)
    else:
        logger.info("auto refresh disabled (AUTO_REFRESH_ENABLED=false)")
        app.state.scheduler = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await stop_scheduler()
    app.state.scheduler = None

    task = app.state.initial_fetch
    if task is not None and not task.done():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
    app.state.initial_fetch = None

    if app.state.market is not None:
        await app.state.market.close()
    await db_session.engine.dispose()


def run() -> None:
    """Console entry point: ``coin-market-feed`` or ``python -m app.main``."""
    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()
