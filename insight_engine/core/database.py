"""
Async PostgreSQL connection pool.

The relational store is an external collaborator: it supplies raw records to
`PostgresRecordSource` and receives persisted insights and simulation
results. All connections flow through the module-level pool below.

Connection Pool Configuration:
- min_size: 1
- max_size: 10
- command_timeout: 60 seconds

Usage:
    # At application startup (in FastAPI lifespan)
    await init_db()

    # In services
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM journal_entries")

    # At application shutdown
    await close_db()
"""

from typing import Optional

import asyncpg
from asyncpg import Pool

from insight_engine.core.config import get_settings
from insight_engine.core.exceptions import ConfigurationError


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool if one was already created.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        ConfigurationError: If DATABASE_URL is not configured.
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigurationError(["DATABASE_URL is not set"])

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=1,
            max_size=10,
            command_timeout=60,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing it lazily.

    Returns:
        Pool: The asyncpg connection pool instance.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Safe to call when no pool exists. A later get_db_pool() creates a new one.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


__all__ = ["init_db", "get_db_pool", "close_db"]
