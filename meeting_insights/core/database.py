"""
asyncpg pool for the meeting record store.

PostgresRecordSource is the only consumer; the analytics services never see a
connection. The pool is a module-level singleton opened by the FastAPI
lifespan and created lazily on first use otherwise.

Pool bounds and the query timeout come from Settings
(DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE, DB_COMMAND_TIMEOUT).

Usage:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(sql, *params)
"""

import logging
from typing import Optional

import asyncpg
from asyncpg import Pool

from meeting_insights.core.config import get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Pool Singleton
# =============================================================================

_pool: Optional[Pool] = None


async def init_db() -> Pool:
    """
    Open the record store pool, or return the one already open.

    Raises:
        RuntimeError: DATABASE_URL is not set.
        asyncpg.PostgresError, OSError: The database cannot be reached.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is not configured")

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
        logger.info(
            f"Record store pool opened (min={settings.db_pool_min_size}, "
            f"max={settings.db_pool_max_size})"
        )

    return _pool


async def get_db_pool() -> Pool:
    """Return the open pool, opening it on first use."""
    if _pool is None:
        return await init_db()
    return _pool


async def close_db() -> None:
    """Close the pool if open; a later get_db_pool() opens a fresh one."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Record store pool closed")
