"""View projections over the effective alert snapshot.

Pure, read-only shapes for the dashboard screens: summary counts, the
filterable alert list and the alert detail. Nothing here fetches or
mutates.
"""

from dataclasses import dataclass, field
from typing import Any

from src.alerts.schemas import AlertKind, AlertSnapshot, CanonicalAlert, SourceType

DISPLAY_TYPES = {
    AlertKind.SOS: "SOS Alert",
    AlertKind.INCIDENT: "Incident",
    AlertKind.GENERAL: "Message",
}

RISK_SCORES = {
    "critical": 95,
    "high": 75,
    "medium": 50,
    "low": 25,
}


@dataclass(frozen=True)
class AlertView:
    """One alert row as rendered by the list and detail screens."""

    id: str
    source_type: str
    alert_kind: str
    display_type: str
    title: str
    description: str
    severity: str
    risk_score: int
    is_read: bool
    status: str
    status_label: str
    user_id: str | None
    user_name: str
    user_category: str
    is_vulnerable: bool
    location: str | None
    created_at: str
    ability: str | None = None
    battery: int | None = None
    category: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class DashboardSummary:
    total: int
    unread: int
    sos_count: int
    incident_count: int
    general_count: int
    active_critical: int
    failed_sources: list[str] = field(default_factory=list)
    latest: list[AlertView] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.__dict__)
        data["latest"] = [view.to_dict() for view in self.latest]
        return data


def format_location(location: tuple[float, float] | None) -> str | None:
    if location is None:
        return None
    lat, lng = location
    return f"{lat:.4f}, {lng:.4f}"


def to_view(alert: CanonicalAlert) -> AlertView:
    """Project a canonical alert into its display row."""
    return AlertView(
        id=alert.id,
        source_type=alert.source_type.value,
        alert_kind=alert.alert_kind.value,
        display_type=DISPLAY_TYPES[alert.alert_kind],
        title=alert.title,
        description=alert.content,
        severity=alert.severity,
        risk_score=RISK_SCORES.get(alert.severity, RISK_SCORES["low"]),
        is_read=alert.is_read,
        status=alert.status,
        status_label="Resolved" if alert.is_read else "Active",
        user_id=alert.user_id,
        user_name=alert.user_name,
        user_category=alert.ability or alert.category or "Normal",
        is_vulnerable=bool(alert.ability) and alert.ability != "NONE",
        location=format_location(alert.location),
        created_at=alert.created_at.isoformat(),
        ability=alert.ability,
        battery=alert.battery,
        category=alert.category,
        image_url=alert.image_url,
    )


def dashboard_summary(snapshot: AlertSnapshot, latest: int = 5) -> DashboardSummary:
    """
    Counts for the dashboard header cards plus the newest alerts.

    Args:
        snapshot: Effective snapshot.
        latest: How many of the newest alerts to include.
    """
    by_kind = snapshot.stats.by_kind
    return DashboardSummary(
        total=snapshot.stats.total,
        unread=snapshot.stats.unread,
        sos_count=by_kind[AlertKind.SOS],
        incident_count=by_kind[AlertKind.INCIDENT],
        general_count=by_kind[AlertKind.GENERAL],
        active_critical=sum(
            1 for a in snapshot.alerts if a.severity == "critical" and not a.is_read
        ),
        failed_sources=sorted(s.value for s in snapshot.failed_sources),
        latest=[to_view(a) for a in snapshot.alerts[:latest]],
    )


def list_alerts(
    snapshot: AlertSnapshot,
    kind: AlertKind | None = None,
    severity: str | None = None,
    source: SourceType | None = None,
    unread_only: bool = False,
    search: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[AlertView]:
    """
    Filter the snapshot's alerts, keeping newest-first order.

    Args:
        snapshot: Effective snapshot.
        kind: Only this alert kind.
        severity: Only this severity.
        source: Only alerts from this source collection.
        unread_only: Drop read/resolved alerts.
        search: Case-insensitive match on title, content or user name.
        limit: Maximum rows to return (None for all).
        offset: Rows to skip after filtering.
    """
    needle = search.lower().strip() if search else None

    matched = []
    for alert in snapshot.alerts:
        if kind is not None and alert.alert_kind is not kind:
            continue
        if severity is not None and alert.severity != severity:
            continue
        if source is not None and alert.source_type is not source:
            continue
        if unread_only and alert.is_read:
            continue
        if needle and not any(
            needle in text.lower()
            for text in (alert.title, alert.content, alert.user_name)
        ):
            continue
        matched.append(alert)

    end = offset + limit if limit is not None else None
    return [to_view(a) for a in matched[offset:end]]


def alert_detail(snapshot: AlertSnapshot, alert_id: str) -> AlertView | None:
    alert = snapshot.get(alert_id)
    return to_view(alert) if alert is not None else None
