from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Environment
    environment: str = "development"  # "development" or "production"

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/deal_watch.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    # Source fetch
    fetch_interval_minutes: int = 30
    fetch_on_startup: bool = True
    fetch_timeout: int = 20  # seconds
    crawler_max_retries: int = 2

    # Watch queries
    watch_query_min_interval: int = 30  # minutes
    watch_query_default_lookback: int = 60  # minutes
    reschedule_max_retries: int = 3
    reschedule_retry_delay: float = 1.0  # seconds
    scheduler_timezone: str = "UTC"

    # Notifications
    webhook_timeout: int = 5  # seconds
    notification_enabled: bool = True

    # CORS (comma-separated origins, empty means localhost only)
    cors_origins: str = ""

    # Admin
    admin_api_key: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def sync_database_url(self) -> str:
        return self.database_url.replace("+aiosqlite", "")


@lru_cache
def get_settings() -> Settings:
    return Settings()
