"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, ge=1, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, ge=0, validation_alias="DB_MAX_OVERFLOW")

    # Bookmarking service the importer reads from
    source_base_url: str = Field(
        default="https://b.hatena.ne.jp",
        validation_alias="SOURCE_BASE_URL",
    )
    source_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; BookmarkAgent/1.0)",
        validation_alias="SOURCE_USER_AGENT",
    )
    source_timeout: float = Field(default=30.0, gt=0, validation_alias="SOURCE_TIMEOUT")
    source_page_size: int = Field(default=20, ge=1, validation_alias="SOURCE_PAGE_SIZE")
    # Minimum delay between two page fetches against the same host
    source_request_interval: float = Field(
        default=1.0, ge=0, validation_alias="SOURCE_REQUEST_INTERVAL",
    )

    # Incremental sync
    sync_concurrency: int = Field(default=1, ge=1, validation_alias="SYNC_CONCURRENCY")
    # Bearer secret for the cron trigger. Empty disables the endpoint.
    cron_secret: str = Field(default="", validation_alias="CRON_SECRET")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def source_host(self) -> str:
        """Host part of the source URL, used to key per-host rate limiting."""
        return (urlparse(self.source_base_url).hostname or self.source_base_url).lower()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
