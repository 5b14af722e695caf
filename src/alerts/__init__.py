"""Multi-source alert unification engine.

Components:
- CanonicalAlert / AlertSnapshot / Stats: Normalized alert schema and snapshots
- normalize_message / normalize_sos / normalize_incident: Source adapters
- AlertAggregator: Concurrent fail-soft fetch, merge, sort and stats
- PollScheduler / LoadingState: Interval + on-demand polling with coalescing
- MutationOverlay: Optimistic mark-read / resolve replayed over new polls
- AlertFeed: Facade consumed by the dashboard projections and API
- HealthMonitor / HealthReport: Upstream health indicator
- AlertFeedConfig: Pydantic settings for intervals and retention
"""

from src.alerts.adapters import normalize_incident, normalize_message, normalize_sos
from src.alerts.aggregator import AlertAggregator, SourceClient
from src.alerts.config import AlertFeedConfig
from src.alerts.errors import (
    AlertFeedError,
    AlertNotFoundError,
    MutationRejectedError,
    SnapshotInconsistentError,
    SourceUnavailableError,
)
from src.alerts.overlay import MutationOverlay
from src.alerts.scheduler import LoadingState, PollScheduler, PollState
from src.alerts.schemas import (
    AlertKind,
    AlertSnapshot,
    CanonicalAlert,
    MutationKind,
    PendingMutation,
    SourceType,
    Stats,
    compute_stats,
)
from src.alerts.service import AlertFeed, HealthMonitor, HealthReport

__all__ = [
    "AlertAggregator",
    "AlertFeed",
    "AlertFeedConfig",
    "AlertFeedError",
    "AlertKind",
    "AlertNotFoundError",
    "AlertSnapshot",
    "CanonicalAlert",
    "HealthMonitor",
    "HealthReport",
    "LoadingState",
    "MutationKind",
    "MutationOverlay",
    "MutationRejectedError",
    "PendingMutation",
    "PollScheduler",
    "PollState",
    "SnapshotInconsistentError",
    "SourceClient",
    "SourceType",
    "SourceUnavailableError",
    "Stats",
    "compute_stats",
    "normalize_incident",
    "normalize_message",
    "normalize_sos",
]
