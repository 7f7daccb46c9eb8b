import logging
from collections.abc import AsyncIterator

from fastapi import HTTPException
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .config import settings

logger = logging.getLogger(__name__)

# Shared async pool behind the request-scoped connection dependency.
pool: AsyncConnectionPool | None = None


async def init_db_pool() -> None:
    global pool

    if not settings.database_url:
        logger.warning("DATABASE_URL is empty; starting without a connection pool")
        return

    pool = AsyncConnectionPool(
        conninfo=settings.database_url,
        open=False,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        kwargs={"autocommit": True, "row_factory": dict_row},
    )
    await pool.open()
    logger.info(
        "database pool opened (min_size=%s, max_size=%s)",
        settings.db_pool_min_size,
        settings.db_pool_max_size,
    )


async def close_db_pool() -> None:
    global pool

    if pool is None:
        return

    await pool.close()
    pool = None
    logger.info("database pool closed")


async def get_db_connection() -> AsyncIterator[AsyncConnection]:
    # Routes get a clear 500 instead of a None-type error when no database is configured.
    if pool is None:
        raise HTTPException(status_code=500, detail="DATABASE_URL is not configured")

    async with pool.connection() as connection:
        yield connection
