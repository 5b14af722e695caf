"""
Prometheus metrics for monitoring the alert feed.

Defines and exposes metrics for:
- Aggregation cycles and their latency
- Per-source fetch failures
- Current alert and unread counts
- Operator mutations and the pending overlay size
- Upstream backend health

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the alert feed.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_aggregation(status="ok", latency=0.4)
        metrics.set_alert_counts({"SOS": 2, "INCIDENT": 5, "GENERAL": 5}, unread=3)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.aggregation_cycles = Counter(
            "sensesafe_aggregation_cycles_total",
            "Total aggregation cycles",
            ["status"],  # ok, partial, failed
        )

        self.source_errors = Counter(
            "sensesafe_source_errors_total",
            "Total upstream source fetch failures",
            ["source", "error_type"],
        )

        self.aggregation_latency = Histogram(
            "sensesafe_aggregation_latency_seconds",
            "Time to fetch, normalize and merge all sources",
            buckets=LATENCY_BUCKETS,
        )

        self.alerts_current = Gauge(
            "sensesafe_alerts_current",
            "Alerts in the latest effective snapshot",
            ["kind"],
        )

        self.alerts_unread = Gauge(
            "sensesafe_alerts_unread",
            "Unread alerts in the latest effective snapshot",
        )

        self.mutations = Counter(
            "sensesafe_mutations_total",
            "Operator mutations issued against the backend",
            ["kind", "outcome"],  # outcome: applied, rejected, noop, not_found
        )

        self.pending_mutations = Gauge(
            "sensesafe_pending_mutations",
            "Optimistic mutations not yet corroborated by a poll",
        )

        self.upstream_health = Gauge(
            "sensesafe_upstream_health",
            "Upstream backend health (1=reachable and healthy, 0=otherwise)",
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """
        Start HTTP server for Prometheus scraping.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        if self._server_started:
            logger.warning("Metrics server already started")
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")

    def record_aggregation(
        self,
        status: str,
        latency: float,
    ) -> None:
        """
        Record one aggregation cycle.

        Args:
            status: ok, partial or failed
            latency: Cycle duration in seconds
        """
        self.aggregation_cycles.labels(status=status).inc()
        self.aggregation_latency.observe(latency)

    def record_source_error(self, source: str, error_type: str) -> None:
        """Record a failed fetch for one upstream source."""
        self.source_errors.labels(source=source, error_type=error_type).inc()

    def set_alert_counts(self, by_kind: dict[str, int], unread: int) -> None:
        """
        Publish the counts of the effective snapshot.

        Args:
            by_kind: Alert count per alert kind
            unread: Unread alert count
        """
        for kind, count in by_kind.items():
            self.alerts_current.labels(kind=kind).set(count)
        self.alerts_unread.set(unread)

    def record_mutation(self, kind: str, outcome: str) -> None:
        """Record an operator mutation outcome."""
        self.mutations.labels(kind=kind, outcome=outcome).inc()

    def set_pending_mutations(self, count: int) -> None:
        self.pending_mutations.set(count)

    def set_upstream_health(self, healthy: bool) -> None:
        self.upstream_health.set(1 if healthy else 0)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
