# app/db/bootstrap.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from app.db import models  # noqa: F401  (registers tables on Base.metadata)
from app.db.session import Base


async def ensure_db_primitives(engine: AsyncEngine) -> None:
    """
    Create the key-value table idempotently at startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
