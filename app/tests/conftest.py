from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.config.settings import Settings
from app.db import models  # noqa: F401
from app.db.session import Base
from app.services.kv_store import KeyValueStore
from app.tests.helpers import make_settings


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def sessionmaker():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield Session
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def kv_store(sessionmaker) -> KeyValueStore:
    return KeyValueStore(sessionmaker)
