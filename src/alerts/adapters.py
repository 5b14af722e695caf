"""Source adapters: upstream records -> ``CanonicalAlert``.

Each normalizer is a total function. Missing or malformed optional fields
fall back to explicit defaults instead of raising, so one bad record never
breaks an aggregation cycle.
"""

import time
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from src.alerts.schemas import (
    EPOCH,
    VALID_SEVERITIES,
    AlertKind,
    CanonicalAlert,
    SourceType,
)

UNKNOWN_USER = "Unknown User"
NO_DESCRIPTION = "No description"

# SOS lifecycle status meaning the person is safe
SOS_SAFE_STATUS = "SAFE"
INCIDENT_CLOSED_STATUSES = frozenset({"RESOLVED", "VERIFIED"})
INCIDENT_RESOLVED_STATUS = "RESOLVED"

MESSAGE_READ_STATUS = "READ"
MESSAGE_UNREAD_STATUS = "UNREAD"

DEFAULT_MESSAGE_TITLES = {
    AlertKind.SOS: "SOS Alert",
    AlertKind.INCIDENT: "Incident Report",
    AlertKind.GENERAL: "Message",
}

DEFAULT_MESSAGE_SEVERITIES = {
    AlertKind.SOS: "critical",
    AlertKind.INCIDENT: "medium",
    AlertKind.GENERAL: "low",
}


def _synthesize_id() -> str:
    """Last-resort id for a record that has none.

    Stable for the lifetime of the alert object but NOT across refetches.
    """
    return f"alert-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _text(value: Any) -> str | None:
    """Return a stripped non-empty string, or None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int | None:
    number = _number(value)
    return int(number) if number is not None else None


def parse_timestamp(value: Any) -> datetime:
    """Parse an upstream timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings (``Z`` suffix, offsets, or naive values which
    are taken as UTC), datetimes, and epoch seconds or milliseconds.
    Anything else yields ``EPOCH``.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return EPOCH
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return EPOCH
    else:
        return EPOCH

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _location(record: Mapping[str, Any]) -> tuple[float, float] | None:
    lat = _number(record.get("lat"))
    lng = _number(record.get("lng"))
    if lat is None or lng is None:
        return None
    return (lat, lng)


def _identity(record: Mapping[str, Any]) -> tuple[str, str | None]:
    """Return (id, backend_id) for a record."""
    upstream_id = _text(record.get("id"))
    if upstream_id is None:
        return _synthesize_id(), None
    return upstream_id, upstream_id


def _message_kind(record: Mapping[str, Any]) -> AlertKind:
    tag = _text(record.get("message_type")) or _text(record.get("type")) or ""
    try:
        return AlertKind(tag.upper())
    except ValueError:
        return AlertKind.GENERAL


def normalize_message(record: Mapping[str, Any]) -> CanonicalAlert:
    """Normalize a direct message.

    The kind comes from the message's own type tag and the read flag is
    copied as-is.
    """
    alert_id, backend_id = _identity(record)
    kind = _message_kind(record)
    is_read = bool(record.get("is_read", False))

    severity = (_text(record.get("severity")) or "").lower()
    if severity not in VALID_SEVERITIES:
        severity = DEFAULT_MESSAGE_SEVERITIES[kind]

    return CanonicalAlert(
        id=alert_id,
        source_type=SourceType.MESSAGE,
        alert_kind=kind,
        title=_text(record.get("title")) or DEFAULT_MESSAGE_TITLES[kind],
        content=_text(record.get("content")) or NO_DESCRIPTION,
        severity=severity,
        is_read=is_read,
        status=MESSAGE_READ_STATUS if is_read else MESSAGE_UNREAD_STATUS,
        created_at=parse_timestamp(record.get("created_at")),
        backend_id=backend_id,
        location=_location(record),
        user_id=_text(record.get("user_id")),
        user_name=_text(record.get("user_name")) or UNKNOWN_USER,
        ability=_text(record.get("ability")),
        category=_text(record.get("category")),
    )


def normalize_sos(record: Mapping[str, Any]) -> CanonicalAlert:
    """Normalize an SOS record.

    SOS alerts are always critical. They carry a lifecycle status rather
    than a read flag, so ``is_read`` holds only once the status is exactly
    SAFE. The upstream status string is kept as-is for display.
    """
    alert_id, backend_id = _identity(record)
    status = _text(record.get("status")) or "UNKNOWN"
    ability = _text(record.get("ability"))

    return CanonicalAlert(
        id=alert_id,
        source_type=SourceType.SOS,
        alert_kind=AlertKind.SOS,
        title=f"SOS Alert ({ability or 'Unknown'})",
        content=f"Emergency SOS - Status: {status}",
        severity="critical",
        is_read=status == SOS_SAFE_STATUS,
        status=status,
        created_at=parse_timestamp(record.get("created_at")),
        backend_id=backend_id,
        location=_location(record),
        user_id=_text(record.get("user_id")),
        user_name=_text(record.get("user_name")) or UNKNOWN_USER,
        ability=ability or "NONE",
        battery=_int(record.get("battery")),
    )


def normalize_incident(record: Mapping[str, Any]) -> CanonicalAlert:
    """Normalize an incident report.

    Severity is the lower-cased risk level (medium when absent or not a
    known severity); RESOLVED and VERIFIED incidents count as read.
    """
    alert_id, backend_id = _identity(record)
    status = _text(record.get("status")) or "UNKNOWN"
    incident_type = _text(record.get("type"))

    severity = (_text(record.get("risk_level")) or "").lower()
    if severity not in VALID_SEVERITIES:
        severity = "medium"

    return CanonicalAlert(
        id=alert_id,
        source_type=SourceType.INCIDENT,
        alert_kind=AlertKind.INCIDENT,
        title=f"Incident: {incident_type or 'Unknown'}",
        content=_text(record.get("description")) or NO_DESCRIPTION,
        severity=severity,
        is_read=status in INCIDENT_CLOSED_STATUSES,
        status=status,
        created_at=parse_timestamp(record.get("created_at")),
        backend_id=backend_id,
        location=_location(record),
        user_id=_text(record.get("user_id")),
        user_name=_text(record.get("user_name")) or UNKNOWN_USER,
        category=incident_type,
        risk_score=_number(record.get("risk_score")),
        image_url=_text(record.get("image_url")),
    )


NORMALIZERS: dict[SourceType, Callable[[Mapping[str, Any]], CanonicalAlert]] = {
    SourceType.MESSAGE: normalize_message,
    SourceType.SOS: normalize_sos,
    SourceType.INCIDENT: normalize_incident,
}
