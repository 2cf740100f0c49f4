"""
Credential store connection and utilities
"""
import asyncio
import asyncpg
import logging
from typing import Optional

from ...config import settings

logger = logging.getLogger(__name__)

CREATE_CREDENTIALS_TABLE = """
CREATE TABLE IF NOT EXISTS credentials (
    username TEXT PRIMARY KEY,
    password TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


class DatabaseConnection:
    """Database connection manager, pool created on first use"""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or settings.DATABASE_URL
        self.pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    async def get_pool(self) -> asyncpg.Pool:
        """Return the shared pool, creating it and the schema if needed"""
        if self.pool is not None:
            return self.pool

        async with self._lock:
            if self.pool is None:
                pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=settings.DB_POOL_SIZE,
                    timeout=settings.DB_TIMEOUT,
                    command_timeout=settings.DB_TIMEOUT,
                )
                try:
                    async with pool.acquire() as conn:
                        await conn.execute(CREATE_CREDENTIALS_TABLE)
                except Exception:
                    await pool.close()
                    raise
                self.pool = pool
                logger.info(f"Database pool created with size {settings.DB_POOL_SIZE}")
        return self.pool

    async def connect(self):
        """Warm up the pool; the service still starts if this fails"""
        try:
            await self.get_pool()
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
            logger.warning(f"Credential store not reachable at startup: {e}")

    async def disconnect(self):
        """Close database connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database pool closed")

    async def fetch_one(self, query: str, *args):
        """Fetch a single row"""
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetch_val(self, query: str, *args):
        """Fetch a single value"""
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(query, *args)


# Global database instance
db_connection = DatabaseConnection()
