"""
Redis cache for search results
"""
import asyncio
import time
import redis.asyncio as redis
from redis.exceptions import RedisError
from typing import Optional
import logging

from ..config import settings
from ..domain.repositories import ISearchCache

logger = logging.getLogger(__name__)


class RedisCache(ISearchCache):
    """Redis cache manager holding serialized search results"""

    def __init__(self, retry_interval: Optional[float] = None):
        self.redis: Optional[redis.Redis] = None
        self.retry_interval = settings.REDIS_RETRY_INTERVAL if retry_interval is None else retry_interval
        self._retry_at = 0.0
        self._lock = asyncio.Lock()

    async def get_client(self) -> Optional[redis.Redis]:
        """
        Return the shared client, connecting on first use

        After a failed connect no new attempt is made until retry_interval
        has passed; callers get None in the meantime.
        """
        if not settings.REDIS_ENABLED:
            return None
        if self.redis is not None:
            return self.redis
        if time.monotonic() < self._retry_at:
            return None

        async with self._lock:
            if self.redis is None and time.monotonic() >= self._retry_at:
                client = redis.from_url(
                    f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
                    password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                    socket_timeout=settings.REDIS_TIMEOUT,
                    socket_connect_timeout=settings.REDIS_TIMEOUT,
                )
                try:
                    await client.ping()
                except (RedisError, OSError, asyncio.TimeoutError) as e:
                    logger.warning(
                        f"Failed to connect to Redis: {e}. Retrying in {self.retry_interval}s."
                    )
                    self._retry_at = time.monotonic() + self.retry_interval
                    await client.aclose()
                    return None
                self.redis = client
                logger.info("Connected to Redis successfully")
        return self.redis

    async def connect(self):
        """Warm up the connection; the service runs without cache if this fails"""
        if not settings.REDIS_ENABLED:
            logger.info("Redis caching is disabled")
            return
        await self.get_client()

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[bytes]:
        """Get value from cache"""
        client = await self.get_client()
        if client is None:
            return None

        try:
            return await client.get(key)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error getting cache key {key}: {e}")
            return None

    async def set(self, key: str, value: bytes, ttl: int = 30) -> bool:
        """Set value in cache with TTL"""
        client = await self.get_client()
        if client is None:
            return False

        try:
            await client.setex(key, ttl, value)
            return True
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error setting cache key {key}: {e}")
            return False


# Global cache instance
cache = RedisCache()
