"""Alert feed configuration.

Controls poll intervals for the alert stream and the upstream health
indicator, and how long an optimistic mutation may stay uncorroborated.
All settings can be overridden via ``ALERTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertFeedConfig(BaseSettings):
    """Configuration for the alert feed."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    poll_interval_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=3600.0,
        description="Seconds between alert aggregation cycles",
    )
    health_poll_interval_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=3600.0,
        description="Seconds between upstream health checks",
    )

    # A confirmed mutation the backend never reflects is dropped after
    # this window and the upstream state is shown again
    pending_mutation_ttl_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds an optimistic mutation may stay uncorroborated",
    )

    dashboard_latest_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Newest alerts included in the dashboard summary",
    )
