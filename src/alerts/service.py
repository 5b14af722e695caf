"""Alert feed service: the produced interface consumed by view projections.

Wires the aggregator, the mutation overlay and the poll scheduler:

    PollScheduler -> AlertAggregator.aggregate() -> MutationOverlay.apply_snapshot()
                                                         |
    get_snapshot() <------------- effective snapshot ----+

Reads (``get_snapshot``, ``get_loading_state``) are synchronous over the
latest in-memory state; ``mark_read`` / ``resolve`` are async and report
success or raise.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog

from src.alerts.aggregator import AlertAggregator, SourceClient
from src.alerts.config import AlertFeedConfig
from src.alerts.overlay import MutationOverlay
from src.alerts.scheduler import LoadingState, PollScheduler
from src.alerts.schemas import AlertSnapshot, CanonicalAlert
from src.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)

TOTAL_FAILURE_ERROR = "all alert sources unavailable"


def _total_failure(snapshot: AlertSnapshot) -> str | None:
    return TOTAL_FAILURE_ERROR if snapshot.is_total_failure else None


class AlertFeed:
    """
    Single consistent alert stream for the dashboard.

    Usage:
        feed = AlertFeed(client)
        feed.start()
        snapshot = feed.get_snapshot()
        await feed.resolve(snapshot.alerts[0])
        await feed.stop()
    """

    def __init__(
        self,
        client: SourceClient,
        config: AlertFeedConfig | None = None,
        overlay: MutationOverlay | None = None,
    ) -> None:
        config = config or AlertFeedConfig()

        self._aggregator = AlertAggregator(client)
        self._overlay = overlay or MutationOverlay(
            client,
            retention_seconds=config.pending_mutation_ttl_seconds,
        )
        self._scheduler: PollScheduler[AlertSnapshot] = PollScheduler(
            "alerts",
            self._aggregator.aggregate,
            config.poll_interval_seconds,
            on_result=self._overlay.apply_snapshot,
            error_of=_total_failure,
        )

        logger.info(
            "Alert feed initialized",
            poll_interval=config.poll_interval_seconds,
            mutation_ttl=config.pending_mutation_ttl_seconds,
        )

    def start(self) -> None:
        self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    def get_snapshot(self) -> AlertSnapshot:
        """Latest effective snapshot (poll result with pending mutations applied)."""
        return self._overlay.effective_snapshot

    def get_loading_state(self) -> LoadingState:
        return self._scheduler.get_loading_state()

    def request_refresh(self) -> bool:
        """Trigger a poll now. Returns False when coalesced into a running one."""
        return self._scheduler.request_refresh()

    async def refresh(self) -> AlertSnapshot:
        """Run (or join) one aggregation cycle and return the effective snapshot."""
        await self._scheduler.refresh()
        return self.get_snapshot()

    async def mark_read(self, alert_id: str) -> bool:
        return await self._overlay.mark_read(alert_id)

    async def resolve(self, alert: CanonicalAlert | str) -> bool:
        return await self._overlay.resolve(alert)


# ── Upstream health indicator ────────────────────────────


class HealthClient(Protocol):
    async def fetch_health(self) -> dict[str, Any]: ...


@dataclass(frozen=True)
class HealthReport:
    """Upstream backend health as shown in the dashboard status strip."""

    status: str
    reachable: bool
    checked_at: datetime
    service: str | None = None
    version: str | None = None

    @property
    def healthy(self) -> bool:
        return self.reachable and self.status.lower() in {"healthy", "ok", "operational"}

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "reachable": self.reachable,
            "healthy": self.healthy,
            "service": self.service,
            "version": self.version,
            "checked_at": self.checked_at.isoformat(),
        }


class HealthMonitor:
    """Polls the backend health endpoint on its own, slower interval."""

    def __init__(self, client: HealthClient, config: AlertFeedConfig | None = None) -> None:
        config = config or AlertFeedConfig()
        self._client = client
        self._metrics = get_metrics()
        self._scheduler: PollScheduler[HealthReport] = PollScheduler(
            "health",
            self.check,
            config.health_poll_interval_seconds,
        )

    async def check(self) -> HealthReport:
        """Query the backend once. An unreachable backend is reported, not raised."""
        now = datetime.now(timezone.utc)
        try:
            payload = await self._client.fetch_health()
        except Exception as e:
            logger.warning("Upstream health check failed", error=str(e))
            report = HealthReport(status="unreachable", reachable=False, checked_at=now)
        else:
            payload = payload if isinstance(payload, dict) else {}
            report = HealthReport(
                status=str(payload.get("status", "unknown")),
                reachable=True,
                checked_at=now,
                service=payload.get("service"),
                version=payload.get("version"),
            )

        self._metrics.set_upstream_health(report.healthy)
        return report

    def start(self) -> None:
        self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()

    def get_report(self) -> HealthReport | None:
        return self._scheduler.latest

    async def refresh(self) -> HealthReport | None:
        return await self._scheduler.refresh()
