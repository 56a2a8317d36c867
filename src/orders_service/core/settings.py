"""Application settings and configuration.

This module defines all configuration options for the orders service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Orders Service", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./orders.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for the idempotency cache
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    idempotency_ttl_seconds: int = Field(default=60 * 60, alias="IDEMPOTENCY_TTL_SECONDS")
    idempotency_pending_ttl_seconds: int = Field(default=30, alias="IDEMPOTENCY_PENDING_TTL_SECONDS")

    # Listing
    orders_default_page_size: int = Field(default=20, alias="ORDERS_DEFAULT_PAGE_SIZE")
    orders_max_page_size: int = Field(default=100, alias="ORDERS_MAX_PAGE_SIZE")

    # Event emission and outbox relay
    event_source: str = Field(default="orders-service", alias="EVENT_SOURCE")
    outbox_relay_enabled: bool = Field(default=True, alias="OUTBOX_RELAY_ENABLED")
    outbox_relay_interval_seconds: float = Field(
        default=1.0,
        alias="OUTBOX_RELAY_INTERVAL_SECONDS",
    )
    outbox_relay_batch_size: int = Field(default=50, alias="OUTBOX_RELAY_BATCH_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
