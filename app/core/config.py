from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Application metadata
    PROJECT_NAME: str = "Schedule Optimizer"
    PROJECT_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # API settings
    API_V1_STR: str = "/api/v1"

    # Database settings
    DATABASE_URL: str = "sqlite:///./schedule_optimizer.db"

    # CORS settings
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8000"

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0
    REDIS_SOCKET_TIMEOUT: int = 5  # seconds
    REDIS_CONNECT_TIMEOUT: int = 5  # seconds
    REDIS_RETRY_ON_TIMEOUT: bool = True

    # Feature flags
    ENABLE_REDIS: bool = True
    ENABLE_CACHING: bool = True

    # OpenRouteService API settings
    OPENROUTE_API_KEY: str = ""
    OPENROUTE_BASE_URL: str = "https://api.openrouteservice.org/"
    OPENROUTE_PROFILE: str = "driving-car"
    OPENROUTE_COUNTRY: str = "CA"
    OPENROUTE_TIMEOUT: int = 30  # seconds
    OPENROUTE_MAX_RETRIES: int = 3
    OPENROUTE_RETRY_DELAY: float = 0.2  # seconds, doubled on each retry
    OPENROUTE_MAX_MATRIX_LOCATIONS: int = 50

    # Scheduling defaults, used when no preferences row exists yet
    DEFAULT_MAX_JOBS_PER_DAY: int = 4
    DEFAULT_WORK_DAY_START: str = "08:00"
    DEFAULT_WORK_DAY_END: str = "17:00"
    DEFAULT_BUFFER_MINUTES: int = 30
    DEFAULT_STARTING_POINT_ADDRESS: str = "11020 Williams Rd Richmond, BC V7A 1X8"
    DEFAULT_OPTIMIZATION_DAYS: int = 30

    # Cache settings
    CACHE_TTL: int = 3600  # 1 hour in seconds
    GEOCODE_CACHE_TTL: int = 30 * 86400  # 30 days in seconds

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse the CORS origins string into a list."""
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def redis_config(self) -> dict:
        """Get Redis configuration as a dictionary."""
        return {
            "url": self.REDIS_URL,
            "password": self.REDIS_PASSWORD,
            "db": self.REDIS_DB,
            "socket_timeout": self.REDIS_SOCKET_TIMEOUT,
            "socket_connect_timeout": self.REDIS_CONNECT_TIMEOUT,
            "retry_on_timeout": self.REDIS_RETRY_ON_TIMEOUT,
        }

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env files

settings = Settings()
