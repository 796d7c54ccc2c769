"""
asyncpg pool for the engine's read-only inputs.

One process-wide pool serves every read the engine makes: the donation
ledger, daily ad delivery, creative metadata, attribution rules, refcode
mappings and campaign spend. The engine never writes to these tables.

Lifecycle:
    init_db()      create the pool (FastAPI lifespan startup)
    get_db_pool()  return the pool, creating it on first use
    close_db()     close it (lifespan shutdown)

Environment Variables:
    DATABASE_URL: PostgreSQL connection string (Required)
"""

import logging
from typing import Optional

import asyncpg
from asyncpg import Pool

from attribution_engine.core.config import get_settings


logger = logging.getLogger(__name__)

# Populated by init_db(); reset to None by close_db()
_pool: Optional[Pool] = None


async def init_db() -> Pool:
    """
    Create the pool from Settings if it does not exist yet.

    Returns:
        Pool: The shared asyncpg pool.

    Raises:
        asyncpg.PostgresError: If the server rejects the connection.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=60,
        )
        logger.info(
            f"Database pool created (min_size={settings.db_pool_min_size}, "
            f"max_size={settings.db_pool_max_size})"
        )

    return _pool


async def get_db_pool() -> Pool:
    """Return the shared pool, creating it lazily when startup skipped it."""
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the shared pool.

    A no-op when no pool exists. The next get_db_pool() opens a fresh one.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")

