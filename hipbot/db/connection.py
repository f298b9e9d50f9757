"""PostgreSQL pool for the persistent session/user stores.

One pool per process. PostgresStore borrows connections through
get_connection(); the bot_state table is created on first init.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

logger = logging.getLogger("hipbot.db")

_pool: Optional[asyncpg.Pool] = None

# Seconds to wait before each retry while the server is still starting
_RETRY_DELAYS = (2, 4, 8, 8)

SCHEMA = """
CREATE TABLE IF NOT EXISTS bot_state (
    namespace   TEXT NOT NULL,
    key         TEXT NOT NULL,
    value       JSONB NOT NULL DEFAULT '{}'::jsonb,
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (namespace, key)
)
"""


async def _create_pool(dsn: str) -> asyncpg.Pool:
    for delay in _RETRY_DELAYS:
        try:
            return await asyncpg.create_pool(dsn, min_size=1, max_size=5)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.warning(f"State database unavailable ({e}), retrying in {delay}s")
            await asyncio.sleep(delay)
    # Last attempt propagates its error to run()
    return await asyncpg.create_pool(dsn, min_size=1, max_size=5)


async def init_db(dsn: str):
    """Open the pool and make sure the bot_state table exists."""
    global _pool
    if _pool is not None:
        return
    pool = await _create_pool(dsn)
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)
    _pool = pool
    logger.info("State database ready")


async def close_db():
    global _pool
    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()


@asynccontextmanager
async def get_connection():
    """Borrow a pooled connection. init_db() must have run."""
    if _pool is None:
        raise RuntimeError("State database not initialized. Call init_db() first.")
    async with _pool.acquire() as conn:
        yield conn
