"""Alert endpoints: dashboard summary, list, detail, mark-read, resolve, refresh."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.alerts.config import AlertFeedConfig
from src.alerts.errors import AlertNotFoundError, MutationRejectedError
from src.alerts.projections import alert_detail, dashboard_summary, list_alerts
from src.alerts.schemas import VALID_SEVERITIES, AlertKind, SourceType
from src.alerts.service import AlertFeed
from src.api.dependencies import get_alert_feed
from src.api.models import (
    AlertItem,
    AlertsResponse,
    DashboardResponse,
    ErrorResponse,
    LoadingStateModel,
    MutationResponse,
    RefreshResponse,
    StatsModel,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


def _loading(feed: AlertFeed) -> LoadingStateModel:
    return LoadingStateModel(**feed.get_loading_state().to_dict())


def _parse_enum(enum_cls, value: str | None, name: str):
    if value is None:
        return None
    try:
        return enum_cls(value.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Invalid {name} {value!r}. "
                f"Must be one of: {sorted(m.value for m in enum_cls)}"
            ),
        )


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard summary",
    description="Header counts and the newest alerts from the effective snapshot.",
)
async def get_dashboard(
    latest: int | None = Query(default=None, ge=0, le=100, description="Newest alerts to include"),
    feed: AlertFeed = Depends(get_alert_feed),
) -> DashboardResponse:
    if latest is None:
        latest = AlertFeedConfig().dashboard_latest_count
    summary = dashboard_summary(feed.get_snapshot(), latest=latest)
    data = summary.to_dict()
    data["latest"] = [AlertItem(**item) for item in data["latest"]]
    return DashboardResponse(**data, loading=_loading(feed))


@router.get(
    "/alerts",
    response_model=AlertsResponse,
    responses={
        422: {"model": ErrorResponse, "description": "Invalid filter parameter"},
    },
    summary="List alerts",
    description=(
        "List unified alerts with optional filtering by kind, severity, source, "
        "read state and free text. Ordered by most recent first."
    ),
)
async def get_alerts(
    kind: str | None = Query(default=None, description="SOS, INCIDENT or GENERAL"),
    severity: str | None = Query(default=None, description="low, medium, high or critical"),
    source: str | None = Query(default=None, description="MESSAGE, SOS or INCIDENT"),
    unread_only: bool = Query(default=False, description="Only unread alerts"),
    search: str | None = Query(default=None, description="Text search on title, content, user"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum alerts to return"),
    offset: int = Query(default=0, ge=0, description="Offset for pagination"),
    feed: AlertFeed = Depends(get_alert_feed),
) -> AlertsResponse:
    start_time = time.perf_counter()

    if severity is not None and severity.lower() not in VALID_SEVERITIES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Invalid severity {severity!r}. "
                f"Must be one of: {sorted(VALID_SEVERITIES)}"
            ),
        )
    alert_kind = _parse_enum(AlertKind, kind, "kind")
    source_type = _parse_enum(SourceType, source, "source")

    snapshot = feed.get_snapshot()
    views = list_alerts(
        snapshot,
        kind=alert_kind,
        severity=severity.lower() if severity else None,
        source=source_type,
        unread_only=unread_only,
        search=search,
        limit=limit,
        offset=offset,
    )

    latency_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "Alerts listed",
        total=len(views),
        kind=kind,
        severity=severity,
        latency_ms=round(latency_ms, 2),
    )

    return AlertsResponse(
        alerts=[AlertItem(**view.to_dict()) for view in views],
        total=len(views),
        stats=StatsModel(**snapshot.stats.to_dict()),
        loading=_loading(feed),
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/alerts/{alert_id}",
    response_model=AlertItem,
    responses={404: {"model": ErrorResponse, "description": "Alert not found"}},
    summary="Alert detail",
)
async def get_alert(
    alert_id: str,
    feed: AlertFeed = Depends(get_alert_feed),
) -> AlertItem:
    view = alert_detail(feed.get_snapshot(), alert_id)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert {alert_id!r} not found",
        )
    return AlertItem(**view.to_dict())


async def _run_mutation(feed: AlertFeed, alert_id: str, action) -> MutationResponse:
    try:
        applied = await action(alert_id)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MutationRejectedError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    alert = feed.get_snapshot().get(alert_id)
    return MutationResponse(
        alert_id=alert_id,
        applied=applied,
        is_read=alert.is_read if alert else True,
        status=alert.status if alert else "",
    )


@router.post(
    "/alerts/{alert_id}/read",
    response_model=MutationResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Alert not found"},
        502: {"model": ErrorResponse, "description": "Backend rejected the mutation"},
    },
    summary="Mark alert as read",
)
async def mark_alert_read(
    alert_id: str,
    feed: AlertFeed = Depends(get_alert_feed),
) -> MutationResponse:
    return await _run_mutation(feed, alert_id, feed.mark_read)


@router.post(
    "/alerts/{alert_id}/resolve",
    response_model=MutationResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Alert not found"},
        502: {"model": ErrorResponse, "description": "Backend rejected the mutation"},
    },
    summary="Resolve alert",
)
async def resolve_alert(
    alert_id: str,
    feed: AlertFeed = Depends(get_alert_feed),
) -> MutationResponse:
    return await _run_mutation(feed, alert_id, feed.resolve)


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Request an immediate poll",
)
async def request_refresh(
    feed: AlertFeed = Depends(get_alert_feed),
) -> RefreshResponse:
    return RefreshResponse(accepted=feed.request_refresh())
