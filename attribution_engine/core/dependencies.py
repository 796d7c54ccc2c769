"""
FastAPI dependency injection utilities.

Provides the dependencies the route handlers declare:
- get_db_session: yields a pooled asyncpg connection for the request
- get_settings_dependency: returns the cached Settings singleton

Type aliases SettingsDep and DBSessionDep keep endpoint signatures short.
Both functions exist as separate callables so tests can swap them through
app.dependency_overrides.
"""

from typing import Annotated, AsyncGenerator

from asyncpg import Connection
from fastapi import Depends

from attribution_engine.core.config import Settings, get_settings
from attribution_engine.core.database import get_db_pool


async def get_db_session() -> AsyncGenerator[Connection, None]:
    """
    Yield an async database connection from the pool.

    The connection is released back to the pool when the endpoint completes,
    regardless of whether the handler raised.

    Yields:
        asyncpg.Connection: An active database connection from the pool.
    """
    pool = await get_db_pool()
    async with pool.acquire() as connection:
        yield connection


def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    In tests:
        app.dependency_overrides[get_settings_dependency] = lambda: test_settings
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

DBSessionDep = Annotated[Connection, Depends(get_db_session)]
