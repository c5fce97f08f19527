from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db import session as db_session
from app.db.models import KeyValueEntry
from app.services.errors import CacheCorrupt
from app.utils.time import utcnow


class KeyValueStore:
    """
    Flat JSON blobs under stable string keys, backed by the kv_store table.

    Writes are serialized through one lock so two quick updates to the same
    key can't race on the insert.
    """

    def __init__(self, sessionmaker: Optional[Callable[[], AsyncSession]] = None):
        self._sessionmaker = sessionmaker
        self._write_lock = asyncio.Lock()

    def _session(self) -> AsyncSession:
        if self._sessionmaker is not None:
            return self._sessionmaker()
        return db_session.session_factory()

    async def get_raw(self, key: str) -> Optional[str]:
        async with self._session() as session:
            row = await session.get(KeyValueEntry, key)
            return row.value if row is not None else None

    async def get_json(self, key: str) -> Any:
        raw = await self.get_raw(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise CacheCorrupt(f"unparseable JSON under {key!r}", source="kv_store") from exc

    async def set_json(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        async with self._write_lock:
            async with self._session() as session:
                row = await session.get(KeyValueEntry, key)
                if row is None:
                    session.add(KeyValueEntry(key=key, value=encoded, updated_at=utcnow()))
                else:
                    row.value = encoded
                    row.updated_at = utcnow()
                await session.commit()
