import json
import pytest
from unittest.mock import AsyncMock, patch

from app.core.cache import CacheError, RedisClient, current_redis_client, init_redis
from app.schemas.cluster import Coordinates
from app.services.geo import DriveTimeResult
from app.services.geocode_cache import RedisGeocodeCache

# Test data
TEST_ADDRESS = "100 Main Street,  Vancouver, BC"
TEST_KEY = "geocode:100 main st, vancouver, bc"
TEST_COORDINATES = Coordinates(lat=49.28, lng=-123.1)

# Fixtures
@pytest.fixture
def provider():
    provider = AsyncMock()
    provider.geocode.return_value = TEST_COORDINATES
    return provider

@pytest.fixture
def redis_client():
    client = AsyncMock()
    client.get.return_value = None
    return client

@pytest.fixture
def cache(provider, redis_client):
    return RedisGeocodeCache(provider, redis_client, ttl=60)

def test_cache_key_uses_normalized_address():
    assert RedisGeocodeCache.cache_key(TEST_ADDRESS) == TEST_KEY
    assert RedisGeocodeCache.cache_key("100 MAIN ST, Vancouver, BC") == TEST_KEY

@pytest.mark.asyncio
async def test_cache_hit_skips_provider(cache, provider, redis_client):
    redis_client.get.return_value = {"lat": 49.28, "lng": -123.1}

    result = await cache.geocode(TEST_ADDRESS)

    assert result == TEST_COORDINATES
    provider.geocode.assert_not_awaited()
    assert cache.hits == 1

@pytest.mark.asyncio
async def test_cache_miss_stores_result(cache, provider, redis_client):
    result = await cache.geocode(TEST_ADDRESS)

    assert result == TEST_COORDINATES
    provider.geocode.assert_awaited_once_with(TEST_ADDRESS)
    redis_client.set.assert_awaited_once_with(TEST_KEY, TEST_COORDINATES, expire=60)
    assert cache.misses == 1

@pytest.mark.asyncio
async def test_failed_geocode_is_not_cached(cache, provider, redis_client):
    provider.geocode.return_value = None

    assert await cache.geocode(TEST_ADDRESS) is None
    redis_client.set.assert_not_awaited()

@pytest.mark.asyncio
async def test_cache_errors_fall_through(cache, provider, redis_client):
    redis_client.get.side_effect = CacheError("Redis get operation failed")
    redis_client.set.side_effect = CacheError("Redis set operation failed")

    result = await cache.geocode(TEST_ADDRESS)

    assert result == TEST_COORDINATES
    provider.geocode.assert_awaited_once()

@pytest.mark.asyncio
async def test_routing_calls_pass_through(cache, provider):
    provider.distance.return_value = DriveTimeResult.success(12, 3.5)
    provider.matrix.return_value = None

    result = await cache.distance(TEST_COORDINATES, TEST_COORDINATES)

    assert result.duration == 12
    assert await cache.matrix([TEST_COORDINATES]) is None
    provider.distance.assert_awaited_once_with(TEST_COORDINATES, TEST_COORDINATES)

@pytest.mark.asyncio
async def test_redis_client_serializes_models():
    with patch('app.core.cache.redis.Redis.from_url') as mock_from_url:
        mock_redis = AsyncMock()
        mock_redis.get.return_value = json.dumps({"lat": 49.28, "lng": -123.1})
        mock_from_url.return_value = mock_redis
        client = RedisClient("redis://localhost:6379/0")

        await client.set(TEST_KEY, TEST_COORDINATES, expire=60)
        value = await client.get(TEST_KEY)

    mock_redis.set.assert_awaited_once_with(
        TEST_KEY, json.dumps({"lat": 49.28, "lng": -123.1}), ex=60
    )
    assert value == {"lat": 49.28, "lng": -123.1}

@pytest.mark.asyncio
async def test_redis_client_wraps_errors():
    with patch('app.core.cache.redis.Redis.from_url') as mock_from_url:
        mock_redis = AsyncMock()
        mock_redis.get.side_effect = ConnectionError("connection refused")
        mock_from_url.return_value = mock_redis
        client = RedisClient("redis://localhost:6379/0")

        with pytest.raises(CacheError, match="Redis get operation failed"):
            await client.get(TEST_KEY)

@pytest.mark.asyncio
async def test_init_redis_discards_unreachable_client():
    with patch('app.core.cache.redis.Redis.from_url') as mock_from_url:
        mock_redis = AsyncMock()
        mock_redis.ping.side_effect = ConnectionError("connection refused")
        mock_from_url.return_value = mock_redis

        with pytest.raises(CacheError, match="Failed to connect to Redis"):
            await init_redis()

    assert current_redis_client() is None
    mock_redis.aclose.assert_awaited_once()

# Run tests
if __name__ == "__main__":
    pytest.main(["-v", "tests/test_geocode_cache.py"])
