import logging
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.db.base import Base
from app.db.session import engine
from app.core.config import settings
from app.api.v1.api import api_router
from app.core.cache import CacheError, close_redis, current_redis_client, init_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Tables for a fresh SQLite deployment; Alembic owns the schema elsewhere
Base.metadata.create_all(bind=engine)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    if not settings.OPENROUTE_API_KEY:
        logger.warning("OPENROUTE_API_KEY is not set; optimization runs will be rejected")

    # Optional: Redis only backs the geocode cache
    if settings.ENABLE_REDIS:
        try:
            await init_redis()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error("Failed to initialize Redis: %s", str(e))
            logger.warning("Running without Redis - addresses will be geocoded on every run")

    yield

    logger.info("Shutting down %s", settings.PROJECT_NAME)
    if settings.ENABLE_REDIS:
        await close_redis()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description="Proposes dates and route order for the unscheduled service job backlog",
    debug=settings.DEBUG,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


def _database_reachable() -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", str(e))
        return False


async def _redis_reachable() -> bool:
    redis_client = current_redis_client()
    if redis_client is None:
        return False
    try:
        return await redis_client.ping()
    except CacheError as e:
        logger.warning("Redis health check failed: %s", str(e))
        return False


@app.get("/health")
async def health_check():
    """
    Service status. Only the database is required; Redis and the routing
    key are reported so a degraded deployment is visible.
    """
    checks = {
        "database": await run_in_threadpool(_database_reachable),
        "redis": await _redis_reachable(),
        "routing": bool(settings.OPENROUTE_API_KEY),
    }
    return {
        "status": "healthy" if checks["database"] else "unhealthy",
        "version": settings.PROJECT_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": checks,
    }
