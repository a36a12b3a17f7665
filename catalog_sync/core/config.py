# catalog_sync/core/config.py

import os
from functools import lru_cache
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Scheduling
    SYNC_SCHEDULE_ENABLED: bool = False
    SYNC_TIMEZONE: str = "America/New_York"
    SYNC_MISFIRE_GRACE_SECONDS: int = 3600

    # Sync run lifecycle
    SYNC_STALE_RUN_HOURS: float = 6.0           # in_progress runs older than this are stuck
    SYNC_MAX_FETCH_ATTEMPTS: int = 3            # transport attempts before the run errors
    SYNC_RETRY_BASE_DELAY_SECONDS: float = 2.0  # doubles on every retry
    SYNC_FAILURE_RATE_THRESHOLD: float = 0.5    # failed/processed above this marks the run as error

    # Transport
    SYNC_HTTP_TIMEOUT_SECONDS: float = 120.0
    SYNC_FTP_TIMEOUT_SECONDS: float = 120.0

    # Supplier priority ranking
    PRIORITY_MIN: int = 1
    PRIORITY_MAX: int = 25
    DEFAULT_RETAIL_VERTICAL_ID: int = 1

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists(os.environ.get('ENV_FILE', '.env')) else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

def get_settings_no_cache():
    """Get settings without caching - useful for testing different environments"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
