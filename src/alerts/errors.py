"""Error taxonomy for the alert feed.

Only ``AlertNotFoundError`` and ``MutationRejectedError`` reach callers.
``SourceUnavailableError`` is raised inside a single source fetch and
absorbed by the aggregator; total aggregation failure is reported through
the scheduler's loading state, never raised.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.alerts.schemas import SourceType


class AlertFeedError(Exception):
    """Base exception for alert feed errors."""


class SourceUnavailableError(AlertFeedError):
    """One upstream source could not be fetched or returned a bad payload."""

    def __init__(self, source: "SourceType", cause: BaseException):
        super().__init__(f"{source.value} source unavailable: {cause}")
        self.source = source
        self.cause = cause


class AlertNotFoundError(AlertFeedError):
    """A mutation targeted an id absent from the current effective snapshot."""

    def __init__(self, alert_id: str):
        super().__init__(f"Alert {alert_id!r} not found in current snapshot")
        self.alert_id = alert_id


class MutationRejectedError(AlertFeedError):
    """The backend refused (or could not receive) a read/resolve call."""

    def __init__(self, alert_id: str, reason: str, status_code: int | None = None):
        super().__init__(f"Mutation on alert {alert_id!r} rejected: {reason}")
        self.alert_id = alert_id
        self.reason = reason
        self.status_code = status_code


class SnapshotInconsistentError(AlertFeedError):
    """Snapshot stats disagree with its alert sequence."""
