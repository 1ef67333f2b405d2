import logging
from typing import Generator

from fastapi import Depends, HTTPException, status

from app.core.cache import current_redis_client
from app.core.config import settings
from app.db.session import SessionLocal
from app.services.clients.openroute import OpenRouteServiceClient
from app.services.geocode_cache import RedisGeocodeCache
from app.services.interfaces import GeoProvider
from app.services.optimization_engine import SchedulingOptimizationEngine
from app.services.repositories import (
    SqlClusterSource, SqlDistanceMatrixStore, SqlJobSource, SqlPatternStore,
    SqlPreferenceSource, SqlScheduleSource
)

logger = logging.getLogger(__name__)


def get_db() -> Generator:
    """
    Dependency that provides a database session.
    """
    try:
        db = SessionLocal()
        yield db
    finally:
        db.close()


def get_geo_provider() -> GeoProvider:
    """
    OpenRouteService client, wrapped in the Redis geocode cache when Redis is up.
    """
    try:
        provider = OpenRouteServiceClient()
    except ValueError as e:
        logger.error("Routing provider is not configured: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Routing provider is not configured"
        )

    redis_client = current_redis_client()
    if settings.ENABLE_REDIS and settings.ENABLE_CACHING and redis_client is not None:
        return RedisGeocodeCache(provider, redis_client)
    return provider


def get_preference_source() -> SqlPreferenceSource:
    return SqlPreferenceSource()


def get_cluster_source() -> SqlClusterSource:
    return SqlClusterSource()


def get_pattern_store() -> SqlPatternStore:
    return SqlPatternStore()


def get_engine(
    geo_provider: GeoProvider = Depends(get_geo_provider),
    preference_source: SqlPreferenceSource = Depends(get_preference_source),
    cluster_source: SqlClusterSource = Depends(get_cluster_source),
    pattern_store: SqlPatternStore = Depends(get_pattern_store),
) -> SchedulingOptimizationEngine:
    """A fresh engine per request; per-run caches live on the instance."""
    return SchedulingOptimizationEngine(
        job_source=SqlJobSource(),
        preference_source=preference_source,
        cluster_source=cluster_source,
        schedule_source=SqlScheduleSource(),
        pattern_store=pattern_store,
        matrix_store=SqlDistanceMatrixStore(),
        geo_provider=geo_provider,
    )
