"""Redis client and connection management for reqflow."""
from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from reqflow.core.settings import get_settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: ConnectionPool | None = None


async def get_redis_client() -> redis.Redis:
    """Get a Redis client instance with connection pooling."""
    global _redis_pool

    settings = get_settings()

    if _redis_pool is None:
        _redis_pool = ConnectionPool.from_url(
            settings.redis_url,
            db=settings.redis_db,
            decode_responses=True,
            max_connections=20,
            retry_on_timeout=True,
        )
        logger.info(f"Created Redis connection pool: {settings.redis_url}")

    return redis.Redis(connection_pool=_redis_pool)


async def test_redis_connection() -> bool:
    """Test Redis connection and return True if successful."""
    try:
        client = await get_redis_client()
        result = await client.ping()
        logger.info("Redis connection test successful")
        return result is True  # ping() returns True on success when decode_responses=True
    except Exception as e:
        logger.error(f"Redis connection test failed: {e}")
        return False


async def close_redis_connection() -> None:
    """Close Redis connection pool."""
    global _redis_pool

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None
        logger.info("Redis connection pool closed")


async def redis_set_if_absent(key: str, value: Any, ttl: int) -> bool:
    """Set a key only when it does not exist yet, with a TTL."""
    client = await get_redis_client()
    return bool(await client.set(key, value, ex=ttl, nx=True))


async def redis_delete(key: str) -> int:
    """Delete a key from Redis."""
    client = await get_redis_client()
    return await client.delete(key)
