"""PostgreSQL pool and schema migrations."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from task_api.config import get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

# Global connection pool
_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Raises:
        RuntimeError: If pool is not initialized
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Create the connection pool sized from settings. Idempotent."""
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.database_pool_min_size,
            max_size=settings.database_pool_max_size,
            command_timeout=settings.database_command_timeout_seconds,
        )
    except (OSError, asyncpg.PostgresError) as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.database_pool_min_size,
        max_size=settings.database_pool_max_size,
    )
    return _pool


async def close_database() -> None:
    """Close the database connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


async def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply pending ``*.sql`` migrations in filename order.

    Applied filenames are recorded in ``schema_migrations``; each file runs
    in its own transaction together with its bookkeeping row.

    Returns:
        Names of the migrations applied by this call
    """
    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return []

    pool = await get_pool()
    applied: list[str] = []

    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                filename TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        done = {row["filename"] for row in await conn.fetch("SELECT filename FROM schema_migrations")}

        for migration_file in sorted(migrations_dir.glob("*.sql")):
            if migration_file.name in done:
                continue
            try:
                async with conn.transaction():
                    await conn.execute(migration_file.read_text())
                    await conn.execute(
                        "INSERT INTO schema_migrations (filename) VALUES ($1)",
                        migration_file.name,
                    )
            except asyncpg.PostgresError as e:
                logger.error("migration_failed", file=migration_file.name, error=str(e))
                raise
            applied.append(migration_file.name)
            logger.info("migration_applied", file=migration_file.name)

    if not applied:
        logger.info("migrations_up_to_date")
    return applied


async def health_check() -> bool:
    """Check database connectivity.

    Returns:
        True if database is healthy, False otherwise (including no pool)
    """
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (RuntimeError, OSError, asyncpg.PostgresError) as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
