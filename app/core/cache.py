"""
Redis caching utilities for the application.
"""
from typing import Optional, Dict, Any, Union
import json
import redis.asyncio as redis
from contextlib import asynccontextmanager

from app.core.config import settings


class CacheError(Exception):
    """Raised when a Redis operation fails"""
    pass


class RedisClient:
    """Redis client wrapper with connection pooling and error handling."""

    def __init__(self, url: str, **options):
        """Initialize the Redis client.

        Args:
            url: Redis connection URL
            **options: Extra connection options passed to redis-py
        """
        self._redis = redis.Redis.from_url(url, decode_responses=True, **options)
        self._url = url

    async def ping(self) -> bool:
        """Check that the server is reachable."""
        try:
            return await self._redis.ping()
        except Exception as e:
            raise CacheError(f"Failed to connect to Redis: {str(e)}")

    async def close(self):
        """Close the Redis connection pool."""
        await self._redis.aclose()

    async def get(self, key: str) -> Optional[Any]:
        """Get a JSON value from Redis.

        Args:
            key: Cache key

        Returns:
            The decoded value or None if not found
        """
        try:
            value = await self._redis.get(key)
        except Exception as e:
            raise CacheError(f"Redis get operation failed: {str(e)}")
        if value is None:
            return None
        return json.loads(value)

    async def set(self, key: str, value: Union[Dict[str, Any], Any], expire: int = settings.CACHE_TTL) -> bool:
        """Set a value in Redis.

        Args:
            key: Cache key
            value: Value to cache (dict or Pydantic model)
            expire: Expiration time in seconds

        Returns:
            True if successful, False otherwise
        """
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json")
        try:
            return bool(await self._redis.set(key, json.dumps(value), ex=expire))
        except Exception as e:
            raise CacheError(f"Redis set operation failed: {str(e)}")


# Global Redis client instance
_redis_client = None


def _build_client() -> RedisClient:
    config = settings.redis_config
    return RedisClient(
        config.pop("url"),
        password=config["password"],
        db=config["db"],
        socket_timeout=config["socket_timeout"],
        socket_connect_timeout=config["socket_connect_timeout"],
        retry_on_timeout=config["retry_on_timeout"],
    )


@asynccontextmanager
async def get_redis_client():
    """Get a Redis client instance as an async context manager.

    Yields:
        A RedisClient instance
    """
    global _redis_client
    if _redis_client is None:
        if not settings.REDIS_URL:
            raise RuntimeError("REDIS_URL is not configured in settings")
        _redis_client = _build_client()

    # The client is shared and closed on shutdown, not per use
    yield _redis_client


def current_redis_client() -> Optional[RedisClient]:
    """Return the shared client if Redis has been initialized."""
    return _redis_client


async def init_redis():
    """Initialize the Redis connection, leaving no client behind if the server is unreachable."""
    async with get_redis_client() as client:
        try:
            await client.ping()
        except CacheError:
            await close_redis()
            raise


async def close_redis():
    """Close the Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None
