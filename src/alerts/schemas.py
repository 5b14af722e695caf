"""Schema definitions for the unified alert feed.

Three upstream collections (direct messages, SOS records, incident
reports) are normalized into ``CanonicalAlert`` values. One aggregation
cycle produces an immutable ``AlertSnapshot`` whose ``Stats`` are always a
pure fold over its own alert sequence.

Precondition: the upstream write paths are disjoint, so one physical event
is reported by exactly one source. Nothing here deduplicates across
sources.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, TypedDict

from src.alerts.errors import SnapshotInconsistentError


class SourceType(str, Enum):
    """Upstream collection an alert was read from."""

    MESSAGE = "MESSAGE"
    SOS = "SOS"
    INCIDENT = "INCIDENT"


class AlertKind(str, Enum):
    """Normalized alert category used for stats and icons."""

    SOS = "SOS"
    INCIDENT = "INCIDENT"
    GENERAL = "GENERAL"


class MutationKind(str, Enum):
    """Operator action held by the optimistic overlay."""

    MARK_READ = "mark_read"
    RESOLVE = "resolve"


Severity = Literal["low", "medium", "high", "critical"]

VALID_SEVERITIES: frozenset[str] = frozenset({
    "low",
    "medium",
    "high",
    "critical",
})

# Fallback timestamp for records without a usable created_at; sorts last.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ── Raw upstream shapes ──────────────────────────────────


class RawMessageRecord(TypedDict, total=False):
    id: str
    user_id: str
    user_name: str
    message_type: str
    title: str
    content: str
    is_read: bool
    severity: str
    created_at: str


class RawSOSRecord(TypedDict, total=False):
    id: str
    user_id: str
    ability: str
    lat: float
    lng: float
    battery: int
    status: str
    created_at: str


class RawIncidentRecord(TypedDict, total=False):
    id: str
    user_id: str
    type: str
    description: str
    lat: float
    lng: float
    risk_level: str
    risk_score: float
    status: str
    image_url: str
    created_at: str


# ── Canonical alert ──────────────────────────────────────


@dataclass(frozen=True)
class CanonicalAlert:
    """A normalized, source-agnostic alert.

    Attributes:
        id: Identifier copied from the upstream record (synthesized only
            when the record has none).
        source_type: Collection the record came from.
        alert_kind: Normalized category.
        title: Display title.
        content: Display body.
        severity: low, medium, high or critical.
        is_read: Normalized acknowledged/resolved flag.
        status: Upstream status string, kept for display and routing.
        created_at: Timezone-aware creation time used for ordering.
        backend_id: Identifier to send with read/resolve calls; None when
            the upstream record had no id.
        location: Optional (lat, lng).
    """

    id: str
    source_type: SourceType
    alert_kind: AlertKind
    title: str
    content: str
    severity: str
    is_read: bool
    status: str
    created_at: datetime
    backend_id: str | None
    location: tuple[float, float] | None = None
    user_id: str | None = None
    user_name: str = "Unknown User"
    ability: str | None = None
    battery: int | None = None
    category: str | None = None
    risk_score: float | None = None
    image_url: str | None = None

    def with_state(self, is_read: bool, status: str) -> "CanonicalAlert":
        """Return a copy with the read flag and status overridden."""
        return replace(self, is_read=is_read, status=status)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "source_type": self.source_type.value,
            "alert_kind": self.alert_kind.value,
            "title": self.title,
            "content": self.content,
            "severity": self.severity,
            "is_read": self.is_read,
            "status": self.status,
            "location": list(self.location) if self.location else None,
            "created_at": self.created_at.isoformat(),
            "backend_id": self.backend_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "ability": self.ability,
            "battery": self.battery,
            "category": self.category,
            "risk_score": self.risk_score,
            "image_url": self.image_url,
        }


# ── Stats and snapshots ──────────────────────────────────


@dataclass(frozen=True)
class Stats:
    """Summary counts for one alert sequence."""

    total: int
    unread: int
    by_kind: dict[AlertKind, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "unread": self.unread,
            "by_kind": {kind.value: count for kind, count in self.by_kind.items()},
        }


def compute_stats(alerts: tuple[CanonicalAlert, ...] | list[CanonicalAlert]) -> Stats:
    """Fold an alert sequence into ``Stats``.

    Every ``AlertKind`` is present in ``by_kind`` even when its count is 0.
    """
    by_kind = {kind: 0 for kind in AlertKind}
    unread = 0
    for alert in alerts:
        by_kind[alert.alert_kind] += 1
        if not alert.is_read:
            unread += 1
    return Stats(total=len(alerts), unread=unread, by_kind=by_kind)


@dataclass(frozen=True)
class AlertSnapshot:
    """One atomic result of an aggregation cycle (or its overlaid view).

    Attributes:
        alerts: Alerts ordered by created_at, newest first.
        stats: Counts computed from ``alerts``.
        failed_sources: Sources that could not be fetched for this cycle.
        built_at: When the snapshot was assembled.
    """

    alerts: tuple[CanonicalAlert, ...]
    stats: Stats
    failed_sources: frozenset[SourceType] = frozenset()
    built_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def build(
        cls,
        alerts: list[CanonicalAlert] | tuple[CanonicalAlert, ...],
        failed_sources: frozenset[SourceType] = frozenset(),
        built_at: datetime | None = None,
    ) -> "AlertSnapshot":
        """Create a snapshot whose stats are folded from ``alerts``."""
        alerts = tuple(alerts)
        return cls(
            alerts=alerts,
            stats=compute_stats(alerts),
            failed_sources=failed_sources,
            built_at=built_at or datetime.now(timezone.utc),
        )

    @classmethod
    def empty(cls) -> "AlertSnapshot":
        return cls.build(())

    @property
    def is_total_failure(self) -> bool:
        """True when every source failed in the cycle that built this snapshot."""
        return self.failed_sources == frozenset(SourceType)

    def get(self, alert_id: str) -> CanonicalAlert | None:
        """Look up an alert by id."""
        for alert in self.alerts:
            if alert.id == alert_id:
                return alert
        return None

    def check_consistency(self) -> None:
        """Raise if ``stats`` disagree with ``alerts``."""
        expected = compute_stats(self.alerts)
        if (
            self.stats.total != expected.total
            or self.stats.unread != expected.unread
            or self.stats.by_kind != expected.by_kind
            or sum(self.stats.by_kind.values()) != self.stats.total
        ):
            raise SnapshotInconsistentError(
                f"Stats {self.stats.to_dict()} do not match alerts "
                f"{expected.to_dict()}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "alerts": [alert.to_dict() for alert in self.alerts],
            "stats": self.stats.to_dict(),
            "failed_sources": sorted(s.value for s in self.failed_sources),
            "built_at": self.built_at.isoformat(),
        }


@dataclass
class PendingMutation:
    """An operator action applied optimistically over poll results.

    ``confirmed`` stays False while the backend call is in flight;
    ``applied_at`` is a monotonic clock reading taken on confirmation.
    """

    alert_id: str
    kind: MutationKind
    target_is_read: bool
    target_status: str
    applied_at: float
    confirmed: bool = False
    # Other upstream statuses equivalent to the target (VERIFIED for RESOLVED)
    accepted_statuses: frozenset[str] = frozenset()

    def is_corroborated_by(self, alert: CanonicalAlert) -> bool:
        """True when upstream data already shows the post-mutation state."""
        return alert.is_read == self.target_is_read and (
            alert.status == self.target_status
            or alert.status in self.accepted_statuses
        )
