import logging
from typing import List, Optional

from app.core.cache import CacheError, RedisClient
from app.core.config import settings
from app.schemas.cluster import Coordinates
from app.services.geo import DriveTimeResult, MatrixResult, normalize_address
from app.services.interfaces import GeoProvider

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "geocode:"


class RedisGeocodeCache:
    """
    GeoProvider decorator that caches geocoding results in Redis.

    Keys are normalized addresses. Cache failures fall through to the
    wrapped provider. Distance and matrix calls are passed through.
    """

    def __init__(self, provider: GeoProvider, redis_client: RedisClient, ttl: int = None):
        self.provider = provider
        self.redis = redis_client
        self.ttl = ttl or settings.GEOCODE_CACHE_TTL
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cache_key(address: str) -> str:
        return f"{CACHE_KEY_PREFIX}{normalize_address(address)}"

    async def geocode(self, address: str) -> Optional[Coordinates]:
        key = self.cache_key(address)
        try:
            cached = await self.redis.get(key)
        except CacheError as e:
            logger.warning("Geocode cache read failed for %s: %s", address, str(e))
            cached = None

        if cached is not None:
            self.hits += 1
            logger.debug("Cache hit for key: %s", key)
            return Coordinates(**cached)

        self.misses += 1
        coordinates = await self.provider.geocode(address)
        if coordinates is None:
            return None

        try:
            await self.redis.set(key, coordinates, expire=self.ttl)
        except CacheError as e:
            logger.warning("Geocode cache write failed for %s: %s", address, str(e))
        return coordinates

    async def distance(self, origin: Coordinates, destination: Coordinates) -> DriveTimeResult:
        return await self.provider.distance(origin, destination)

    async def matrix(self, coordinates: List[Coordinates]) -> Optional[MatrixResult]:
        return await self.provider.matrix(coordinates)
