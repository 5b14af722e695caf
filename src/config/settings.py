"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the SenseSafe operations dashboard.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., LOG_LEVEL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Upstream SenseSafe backend
    backend_base_url: str = "http://localhost:8000"
    backend_token: str | None = None
    request_timeout_seconds: float = Field(default=30.0, gt=0.0)
    source_page_size: int = Field(default=100, ge=1, le=1000)

    # HTTP retry configuration
    max_http_retries: int = Field(default=3, ge=0, le=10)
    max_backoff_seconds: float = Field(default=60.0, ge=1.0, le=300.0)

    # Dashboard API
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    cors_origins: str = "http://localhost:5173"
    # Start the alert feed and health monitor with the API process
    poll_on_startup: bool = True

    # Observability
    metrics_port: int = 9100
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "sensesafe-dashboard"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def tracing_enabled(self) -> bool:
        """Tracing is on once an OTLP collector endpoint is configured."""
        return self.otel_exporter_otlp_endpoint is not None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
