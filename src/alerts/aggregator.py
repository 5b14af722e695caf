"""Aggregator: fetch, normalize and merge the three alert sources.

All three sources are fetched concurrently and each fails soft: a source
that errors or times out contributes nothing to the merge and is recorded
in ``AlertSnapshot.failed_sources``. ``aggregate()`` itself never raises.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import structlog

from src.alerts.adapters import NORMALIZERS
from src.alerts.errors import SourceUnavailableError
from src.alerts.schemas import AlertSnapshot, CanonicalAlert, SourceType
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced

logger = structlog.get_logger(__name__)

# Merge order; ties on created_at keep this order
SOURCE_ORDER: tuple[SourceType, ...] = (
    SourceType.MESSAGE,
    SourceType.SOS,
    SourceType.INCIDENT,
)


class SourceClient(Protocol):
    """Transport collaborator consumed by the aggregator and overlay."""

    async def fetch_messages(self) -> list[dict[str, Any]]: ...

    async def fetch_sos(self) -> list[dict[str, Any]]: ...

    async def fetch_incidents(self) -> list[dict[str, Any]]: ...

    async def mark_message_read(self, message_id: str) -> Any: ...

    async def resolve_sos(self, sos_id: str) -> Any: ...

    async def resolve_incident(self, incident_id: str) -> Any: ...


class AlertAggregator:
    """Builds one ``AlertSnapshot`` per call from all upstream sources."""

    def __init__(self, client: SourceClient) -> None:
        self._client = client
        self._fetchers: dict[SourceType, Callable[[], Awaitable[list[Any]]]] = {
            SourceType.MESSAGE: client.fetch_messages,
            SourceType.SOS: client.fetch_sos,
            SourceType.INCIDENT: client.fetch_incidents,
        }
        self._metrics = get_metrics()
        self._tracer = get_tracer("sensesafe.alerts")

    async def _fetch_source(self, source: SourceType) -> list[Any]:
        """Fetch one source, wrapping any failure as ``SourceUnavailableError``."""
        try:
            records = await self._fetchers[source]()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise SourceUnavailableError(source, e) from e

        if not isinstance(records, list):
            raise SourceUnavailableError(
                source,
                TypeError(f"expected a list of records, got {type(records).__name__}"),
            )
        return records

    def _normalize(self, source: SourceType, records: list[Any]) -> list[CanonicalAlert]:
        normalize = NORMALIZERS[source]
        alerts: list[CanonicalAlert] = []
        skipped = 0
        for record in records:
            if not isinstance(record, Mapping):
                skipped += 1
                continue
            alerts.append(normalize(record))

        if skipped:
            logger.warning(
                "Skipped malformed records",
                source=source.value,
                skipped=skipped,
            )
        return alerts

    async def aggregate(self) -> AlertSnapshot:
        """
        Run one aggregation cycle.

        Returns:
            Snapshot with alerts sorted newest first and matching stats.
            If every source fails the snapshot is empty and
            ``is_total_failure`` is True.
        """
        start_time = time.monotonic()

        with traced(self._tracer, "alerts.aggregate") as span:
            results = await asyncio.gather(
                *(self._fetch_source(source) for source in SOURCE_ORDER),
                return_exceptions=True,
            )

            merged: list[CanonicalAlert] = []
            failed: set[SourceType] = set()
            counts: dict[str, int] = {}

            for source, result in zip(SOURCE_ORDER, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, BaseException):
                    failed.add(source)
                    cause = getattr(result, "cause", result)
                    logger.warning(
                        "Source unavailable, contributing no alerts",
                        source=source.value,
                        error=str(result),
                    )
                    self._metrics.record_source_error(source.value, type(cause).__name__)
                    counts[source.value] = 0
                    continue

                alerts = self._normalize(source, result)
                counts[source.value] = len(alerts)
                merged.extend(alerts)

            # list.sort is stable, so equal timestamps keep SOURCE_ORDER
            merged.sort(key=lambda alert: alert.created_at, reverse=True)

            snapshot = AlertSnapshot.build(merged, failed_sources=frozenset(failed))

            span.set_attribute("alerts.total", snapshot.stats.total)
            span.set_attribute("alerts.failed_sources", len(failed))

        elapsed = time.monotonic() - start_time
        if snapshot.is_total_failure:
            status = "failed"
        elif failed:
            status = "partial"
        else:
            status = "ok"
        self._metrics.record_aggregation(status=status, latency=elapsed)

        logger.info(
            "Aggregation completed",
            status=status,
            total=snapshot.stats.total,
            unread=snapshot.stats.unread,
            per_source=counts,
            elapsed_seconds=round(elapsed, 3),
        )
        return snapshot
