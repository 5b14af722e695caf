"""Local mutation overlay for operator mark-read / resolve actions.

The overlay keeps the last real snapshot from the aggregator (the
baseline) plus a set of pending mutations, and derives the effective
snapshot that the dashboard shows:

    effective = baseline with every pending mutation's target state applied,
                stats recomputed from the overridden sequence

A mutation is applied optimistically before its backend call and rolled
back if the call fails. Confirmed mutations are replayed over every new
baseline until the upstream data shows the same state (corroborated) or
the retention window passes (the backend data wins again).
"""

import time
from collections.abc import Callable

import structlog

from src.alerts.adapters import (
    INCIDENT_CLOSED_STATUSES,
    INCIDENT_RESOLVED_STATUS,
    MESSAGE_READ_STATUS,
    SOS_SAFE_STATUS,
)
from src.alerts.aggregator import SourceClient
from src.alerts.errors import AlertNotFoundError, MutationRejectedError
from src.alerts.schemas import (
    AlertSnapshot,
    CanonicalAlert,
    MutationKind,
    PendingMutation,
    SourceType,
)
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced

logger = structlog.get_logger(__name__)

# Status each source reports once an alert has been acted on
TARGET_STATUS: dict[SourceType, str] = {
    SourceType.SOS: SOS_SAFE_STATUS,
    SourceType.INCIDENT: INCIDENT_RESOLVED_STATUS,
    SourceType.MESSAGE: MESSAGE_READ_STATUS,
}

# Upstream statuses that already count as acted on
DONE_STATUSES: dict[SourceType, frozenset[str]] = {
    SourceType.SOS: frozenset({SOS_SAFE_STATUS}),
    SourceType.INCIDENT: INCIDENT_CLOSED_STATUSES,
    SourceType.MESSAGE: frozenset({MESSAGE_READ_STATUS}),
}


class MutationOverlay:
    """Owns the pending-mutation set and the effective snapshot."""

    def __init__(
        self,
        client: SourceClient,
        retention_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            client: Backend collaborator used for the mutation calls.
            retention_seconds: How long a confirmed mutation may stay
                uncorroborated before it is dropped.
            clock: Monotonic clock, injectable for tests.
        """
        self._client = client
        self._retention_seconds = retention_seconds
        self._clock = clock
        self._baseline = AlertSnapshot.empty()
        self._effective = self._baseline
        self._pending: dict[str, PendingMutation] = {}
        self._metrics = get_metrics()
        self._tracer = get_tracer("sensesafe.alerts")

    @property
    def effective_snapshot(self) -> AlertSnapshot:
        return self._effective

    @property
    def baseline(self) -> AlertSnapshot:
        return self._baseline

    @property
    def pending(self) -> dict[str, PendingMutation]:
        """Read-only view of pending mutations keyed by alert id."""
        return dict(self._pending)

    def _recompute(self) -> None:
        """Rebuild the effective snapshot from the baseline and pending set."""
        if not self._pending:
            self._effective = self._baseline
        else:
            alerts = []
            for alert in self._baseline.alerts:
                mutation = self._pending.get(alert.id)
                if mutation is not None:
                    alert = alert.with_state(
                        mutation.target_is_read, mutation.target_status,
                    )
                alerts.append(alert)
            self._effective = AlertSnapshot.build(
                alerts,
                failed_sources=self._baseline.failed_sources,
                built_at=self._baseline.built_at,
            )

        self._metrics.set_pending_mutations(len(self._pending))
        self._metrics.set_alert_counts(
            {kind.value: count for kind, count in self._effective.stats.by_kind.items()},
            self._effective.stats.unread,
        )

    def apply_snapshot(self, snapshot: AlertSnapshot) -> AlertSnapshot:
        """
        Make ``snapshot`` the new baseline and replay pending mutations.

        Confirmed mutations are dropped once corroborated by the new data or
        once older than the retention window. In-flight mutations are always
        kept; their backend call decides their fate.

        Returns:
            The new effective snapshot.
        """
        now = self._clock()
        corroborated = 0
        expired = 0

        for alert_id, mutation in list(self._pending.items()):
            if not mutation.confirmed:
                continue

            alert = snapshot.get(alert_id)
            if alert is not None and mutation.is_corroborated_by(alert):
                del self._pending[alert_id]
                corroborated += 1
            elif now - mutation.applied_at > self._retention_seconds:
                del self._pending[alert_id]
                expired += 1
                logger.warning(
                    "Pending mutation expired without corroboration",
                    alert_id=alert_id,
                    kind=mutation.kind.value,
                )

        self._baseline = snapshot
        self._recompute()

        if corroborated or expired:
            logger.debug(
                "Pending mutations collected",
                corroborated=corroborated,
                expired=expired,
                remaining=len(self._pending),
            )
        return self._effective

    async def mark_read(self, alert_id: str) -> bool:
        """Mark an alert as read. See ``_mutate``."""
        return await self._mutate(alert_id, MutationKind.MARK_READ)

    async def resolve(self, alert: CanonicalAlert | str) -> bool:
        """Resolve an alert (given as an alert or its id). See ``_mutate``."""
        alert_id = alert.id if isinstance(alert, CanonicalAlert) else alert
        return await self._mutate(alert_id, MutationKind.RESOLVE)

    async def _mutate(self, alert_id: str, kind: MutationKind) -> bool:
        """
        Apply a mutation optimistically and issue the backend call.

        Args:
            alert_id: Target alert id in the effective snapshot.
            kind: Mark-read or resolve.

        Returns:
            True if a backend call was made and succeeded, False if the
            alert already shows the target state or a call for it is
            already in flight.

        Raises:
            AlertNotFoundError: The id is not in the effective snapshot
                (no network call is made).
            MutationRejectedError: The backend call failed; the optimistic
                change has been rolled back.
        """
        alert = self._effective.get(alert_id)
        if alert is None:
            self._metrics.record_mutation(kind.value, "not_found")
            raise AlertNotFoundError(alert_id)

        done_statuses = DONE_STATUSES[alert.source_type]
        in_flight = alert_id in self._pending and not self._pending[alert_id].confirmed
        if in_flight or (alert.is_read and alert.status in done_statuses):
            self._metrics.record_mutation(kind.value, "noop")
            logger.debug("Mutation skipped, nothing to do", alert_id=alert_id, kind=kind.value)
            return False

        if alert.backend_id is None:
            self._metrics.record_mutation(kind.value, "rejected")
            raise MutationRejectedError(alert_id, "alert has no backend identifier")

        mutation = PendingMutation(
            alert_id=alert_id,
            kind=kind,
            target_is_read=True,
            target_status=TARGET_STATUS[alert.source_type],
            applied_at=self._clock(),
            accepted_statuses=done_statuses,
        )
        self._pending[alert_id] = mutation
        self._recompute()

        with traced(
            self._tracer,
            f"alerts.{kind.value}",
            {"alert.id": alert_id, "alert.source": alert.source_type.value},
        ):
            try:
                await self._send(alert)
            except Exception as e:
                # Roll back only our own entry
                if self._pending.get(alert_id) is mutation:
                    del self._pending[alert_id]
                self._recompute()
                self._metrics.record_mutation(kind.value, "rejected")
                logger.error(
                    "Mutation rejected, optimistic change rolled back",
                    alert_id=alert_id,
                    kind=kind.value,
                    error=str(e),
                )
                raise MutationRejectedError(
                    alert_id, str(e), status_code=getattr(e, "status_code", None),
                ) from e

        mutation.applied_at = self._clock()
        mutation.confirmed = True
        self._metrics.record_mutation(kind.value, "applied")
        logger.info(
            "Mutation applied",
            alert_id=alert_id,
            kind=kind.value,
            source=alert.source_type.value,
        )
        return True

    async def _send(self, alert: CanonicalAlert) -> None:
        """Route the backend call by the alert's source collection."""
        if alert.source_type is SourceType.SOS:
            await self._client.resolve_sos(alert.backend_id)
        elif alert.source_type is SourceType.INCIDENT:
            await self._client.resolve_incident(alert.backend_id)
        else:
            await self._client.mark_message_read(alert.backend_id)
