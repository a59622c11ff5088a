"""Application configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Appointment Saga API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Appointment store
    database_url: str = Field(..., alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, alias="DB_MAX_OVERFLOW")

    # Country ledgers and schedule directories, one database per jurisdiction
    country_database_urls: dict[str, str] = Field(
        default_factory=dict,
        alias="COUNTRY_DATABASE_URLS",
        description='JSON object mapping country code to database URL, e.g. {"PE": "..."}',
    )

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, alias="REDIS_DB")

    # Message delivery
    stream_prefix: str = Field(default="appointments", alias="STREAM_PREFIX")
    stream_max_len: int = Field(default=100_000, alias="STREAM_MAX_LEN")
    consumer_batch_size: int = Field(default=10, alias="CONSUMER_BATCH_SIZE")
    consumer_block_ms: int = Field(default=1000, alias="CONSUMER_BLOCK_MS")
    # Visibility timeout: pending messages idle this long are redelivered
    consumer_claim_idle_ms: int = Field(default=30_000, alias="CONSUMER_CLAIM_IDLE_MS")
    max_deliveries: int = Field(default=3, alias="MAX_DELIVERIES")

    # Completion listener
    completion_grace_seconds: float = Field(default=1.0, alias="COMPLETION_GRACE_SECONDS")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Metrics
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


def get_settings() -> Settings:
    """Load settings from the environment.

    Called once per process by the entry points; the result travels inside the
    dependency container instead of living in a module global.
    """
    return Settings()  # type: ignore[call-arg]
