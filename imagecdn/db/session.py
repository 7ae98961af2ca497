# imagecdn/db/session.py
from __future__ import annotations

"""
Image CDN • Catalog database engine & sessions

- Async engine/session for the SQL catalog repository.
- The engine is created lazily (first use), so importing this module never
  needs asyncpg or a reachable database (tests run on the memory catalog or
  their own aiosqlite engine).
"""

from typing import Optional
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from imagecdn.core.config import settings

logger = logging.getLogger(__name__)

# Pool knobs
_POOL_PRE_PING = True
_POOL_RECYCLE = 1800
_POOL_TIMEOUT = 30
_POOL_SIZE = 5
_MAX_OVERFLOW = 10

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_async_engine() -> AsyncEngine:
    """Create the async engine on first use."""
    global _engine
    if _engine is None:
        url = settings.ASYNC_DATABASE_URL
        kwargs = {"pool_pre_ping": _POOL_PRE_PING, "echo": False}
        if url.startswith("postgresql"):
            kwargs.update(
                pool_recycle=_POOL_RECYCLE,
                pool_size=_POOL_SIZE,
                max_overflow=_MAX_OVERFLOW,
                pool_timeout=_POOL_TIMEOUT,
            )
        _engine = create_async_engine(url, **kwargs)
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Create the async session factory on first use."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


async def db_healthcheck() -> bool:
    """Quick SELECT 1 to verify catalog connectivity (used by /readyz)."""
    try:
        async with get_async_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Catalog DB healthcheck failed")
        return False


async def dispose_engine() -> None:
    """Close pooled connections (app shutdown)."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None


__all__ = ["get_async_engine", "get_session_maker", "db_healthcheck", "dispose_engine"]
