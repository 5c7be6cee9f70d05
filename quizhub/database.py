"""asyncpg pool lifecycle and startup schema migrations."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from quizhub.config import get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# Arbitrary key for pg_advisory_lock; every app instance uses the same one.
MIGRATION_LOCK_KEY = 0x5155495A

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Get the shared connection pool.

    Raises:
        RuntimeError: If init_database() has not run
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Create the pool sized from settings. Safe to call twice."""
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
    except (OSError, asyncpg.PostgresError) as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    return _pool


async def close_database() -> None:
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


async def run_migrations() -> None:
    """Apply the bundled ``*.sql`` files in filename order.

    The files are idempotent (``IF NOT EXISTS``) and run on every start.
    An advisory lock keeps several instances starting at once from
    applying them concurrently.
    """
    migration_files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not migration_files:
        logger.info("no_migrations_found", path=str(MIGRATIONS_DIR))
        return

    pool = await get_pool()

    async with pool.acquire() as conn:
        await conn.execute("SELECT pg_advisory_lock($1)", MIGRATION_LOCK_KEY)
        try:
            for migration_file in migration_files:
                try:
                    await conn.execute(migration_file.read_text())
                except asyncpg.PostgresError as e:
                    logger.error("migration_failed", file=migration_file.name, error=str(e))
                    raise
                logger.info("migration_applied", file=migration_file.name)
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", MIGRATION_LOCK_KEY)


async def health_check() -> bool:
    """True when a trivial query round-trips through the pool."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (RuntimeError, OSError, asyncpg.PostgresError) as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
