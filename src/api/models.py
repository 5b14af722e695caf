"""
Request and response models for the dashboard API.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str = Field(..., description="Error message")
    error_type: str | None = Field(default=None, description="Error category")


class LoadingStateModel(BaseModel):
    """Poll scheduler status."""

    state: str = Field(..., description="idle, loading, ready or ready_stale")
    is_loading: bool = Field(..., description="Whether an aggregation cycle is in flight")
    error: str | None = Field(default=None, description="Soft error from the last cycle")
    last_updated_at: str | None = Field(
        default=None, description="When the last cycle completed (ISO format)",
    )


class AlertItem(BaseModel):
    """Single alert row."""

    id: str = Field(..., description="Alert identifier (upstream id)")
    source_type: str = Field(..., description="MESSAGE, SOS or INCIDENT")
    alert_kind: str = Field(..., description="SOS, INCIDENT or GENERAL")
    display_type: str = Field(..., description="Label shown in the alert list")
    title: str
    description: str
    severity: str = Field(..., description="low, medium, high or critical")
    risk_score: int = Field(..., description="Display risk score derived from severity")
    is_read: bool
    status: str = Field(..., description="Upstream status string")
    status_label: str = Field(..., description="Active or Resolved")
    user_id: str | None = None
    user_name: str
    user_category: str
    is_vulnerable: bool
    location: str | None = Field(default=None, description="'lat, lng' with 4 decimals")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    ability: str | None = None
    battery: int | None = None
    category: str | None = None
    image_url: str | None = None


class StatsModel(BaseModel):
    total: int
    unread: int
    by_kind: dict[str, int]


class AlertsResponse(BaseModel):
    """Response model for listing alerts."""

    alerts: list[AlertItem] = Field(..., description="Filtered alerts, newest first")
    total: int = Field(..., description="Number of alerts returned")
    stats: StatsModel = Field(..., description="Stats over the whole effective snapshot")
    loading: LoadingStateModel
    latency_ms: float = Field(..., description="Processing latency in milliseconds")


class DashboardResponse(BaseModel):
    """Response model for the dashboard summary."""

    total: int
    unread: int
    sos_count: int
    incident_count: int
    general_count: int
    active_critical: int = Field(..., description="Unread critical alerts")
    failed_sources: list[str] = Field(
        default_factory=list, description="Sources missing from the last cycle",
    )
    latest: list[AlertItem] = Field(default_factory=list)
    loading: LoadingStateModel


class MutationResponse(BaseModel):
    """Response model for mark-read / resolve."""

    alert_id: str
    applied: bool = Field(
        ..., description="False when the alert already had the target state",
    )
    is_read: bool
    status: str


class RefreshResponse(BaseModel):
    accepted: bool = Field(
        ..., description="False when coalesced into an in-flight cycle",
    )


class UpstreamHealth(BaseModel):
    status: str
    reachable: bool
    healthy: bool
    service: str | None = None
    version: str | None = None
    checked_at: str


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="healthy or degraded")
    service: str
    version: str
    feed: LoadingStateModel
    upstream: UpstreamHealth | None = Field(
        default=None, description="Last upstream health check, if any",
    )
