# app/core/db.py
"""
Async engine for the pick store.

One process-wide engine, created at startup only when DATABASE_URL is set.
Postgres URLs of any flavour are pointed at the asyncpg driver.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app.core import config
from app.core.errors import StoreUnavailable

logger = logging.getLogger("app.db")

_engine: Optional[AsyncEngine] = None


def asyncpg_url(raw: str) -> str:
    """
    'postgres://', 'postgresql://' and 'postgresql+psycopg2://' all become
    'postgresql+asyncpg://'. Other drivers (sqlite+aiosqlite, ...) pass through.
    """
    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://"):]
    url = make_url(raw)
    if url.get_backend_name() != "postgresql":
        return raw
    return url.set(drivername="postgresql+asyncpg").render_as_string(hide_password=False)


def _connect_args(url: str) -> Dict[str, Any]:
    # asyncpg takes ssl as a connect() argument, not as a libpq sslmode query param
    if not url.startswith("postgresql+asyncpg://"):
        return {}
    mode = (config.DATABASE_SSL or "").strip().lower()
    if mode in ("", "disable", "off", "false", "0"):
        return {}
    return {"ssl": mode}


async def init_engine() -> Optional[AsyncEngine]:
    global _engine
    if not config.DATABASE_URL:
        logger.info("DB DATABASE_URL not set; picks kept in memory")
        return None
    url = asyncpg_url(config.DATABASE_URL)
    parsed = make_url(url)
    logger.info("DB engine driver=%s host=%s db=%s", parsed.drivername, parsed.host, parsed.database)
    _engine = create_async_engine(url, pool_pre_ping=True, connect_args=_connect_args(url))
    return _engine


async def close_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def _require_engine() -> AsyncEngine:
    if _engine is None:
        raise StoreUnavailable("database engine is not initialised")
    return _engine


async def exec_sql(sql: str, params: Optional[Dict[str, Any]] = None) -> None:
    async with _require_engine().begin() as conn:
        await conn.execute(text(sql), params or {})


async def fetch_all(sql: str, params: Optional[Dict[str, Any]] = None) -> List[Tuple[Any, ...]]:
    async with _require_engine().connect() as conn:
        result = await conn.execute(text(sql), params or {})
        return [tuple(row) for row in result.fetchall()]
