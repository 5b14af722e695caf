"""
Health check endpoint: feed poller state plus the last upstream check.
"""

from fastapi import APIRouter, Depends

from src.alerts.scheduler import PollState
from src.alerts.service import AlertFeed, HealthMonitor
from src.api.dependencies import get_alert_feed, get_health_monitor
from src.api.models import HealthResponse, LoadingStateModel, UpstreamHealth

router = APIRouter()

SERVICE_NAME = "sensesafe-dashboard"
SERVICE_VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    feed: AlertFeed = Depends(get_alert_feed),
    monitor: HealthMonitor = Depends(get_health_monitor),
) -> HealthResponse:
    """
    Report dashboard health.

    Degraded when the last aggregation cycle could not reach any source or
    the last upstream health check failed.
    """
    loading = feed.get_loading_state()
    report = monitor.get_report()

    degraded = loading.state is PollState.READY_STALE or (
        report is not None and not report.healthy
    )

    return HealthResponse(
        status="degraded" if degraded else "healthy",
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        feed=LoadingStateModel(**loading.to_dict()),
        upstream=UpstreamHealth(**report.to_dict()) if report is not None else None,
    )
