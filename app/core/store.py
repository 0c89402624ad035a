# app/core/store.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from typing_extensions import Protocol
from sqlalchemy.exc import SQLAlchemyError

from app.core import db
from app.core.errors import StoreUnavailable

logger = logging.getLogger("app.store")


class PickStore(Protocol):
    """Flat-record key-value store the picks are persisted in."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    async def set(self, key: str, value: Dict[str, Any]) -> None: ...

    async def list(self, prefix: str) -> List[str]: ...


class MemoryPickStore:
    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        # stored serialized so callers never share a mutable record with the store
        self._data[key] = json.dumps(value)

    async def list(self, prefix: str) -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
  key   TEXT PRIMARY KEY,
  value TEXT NOT NULL
);
"""


class SqlPickStore:
    """kv_store table on the app's SQLAlchemy async engine."""

    async def ensure_schema(self) -> None:
        try:
            await db.exec_sql(SCHEMA)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"could not create kv_store: {e}") from e

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            rows = await db.fetch_all("SELECT value FROM kv_store WHERE key = :key", {"key": key})
        except (SQLAlchemyError, OSError) as e:
            logger.warning("STORE get failed key=%s: %s", key, e)
            raise StoreUnavailable(str(e)) from e
        return json.loads(rows[0][0]) if rows else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        sql = """
        INSERT INTO kv_store (key, value) VALUES (:key, :value)
        ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value;
        """
        try:
            await db.exec_sql(sql, {"key": key, "value": json.dumps(value)})
        except (SQLAlchemyError, OSError) as e:
            logger.warning("STORE set failed key=%s: %s", key, e)
            raise StoreUnavailable(str(e)) from e

    async def list(self, prefix: str) -> List[str]:
        try:
            rows = await db.fetch_all(
                "SELECT key FROM kv_store WHERE key LIKE :pattern ORDER BY key",
                {"pattern": prefix + "%"},
            )
        except (SQLAlchemyError, OSError) as e:
            logger.warning("STORE list failed prefix=%s: %s", prefix, e)
            raise StoreUnavailable(str(e)) from e
        return [r[0] for r in rows]


async def open_store() -> PickStore:
    """SQL-backed when DATABASE_URL is configured, in-memory otherwise."""
    engine = await db.init_engine()
    if engine is None:
        return MemoryPickStore()
    store = SqlPickStore()
    await store.ensure_schema()
    return store
