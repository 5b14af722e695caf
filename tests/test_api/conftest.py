"""Shared fixtures for API tests."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.alerts.adapters import normalize_incident, normalize_message, normalize_sos
from src.alerts.overlay import MutationOverlay
from src.alerts.schemas import AlertSnapshot
from src.alerts.service import AlertFeed, HealthMonitor, HealthReport
from src.api.app import create_app
from src.api.dependencies import get_alert_feed, get_health_monitor


@pytest.fixture
def alert_feed(mock_client, message_record, sos_record, incident_record) -> AlertFeed:
    """Feed over the mock backend, seeded with one alert per source."""
    overlay = MutationOverlay(mock_client)
    overlay.apply_snapshot(AlertSnapshot.build([
        normalize_sos(sos_record),
        normalize_message(message_record),
        normalize_incident(incident_record),
    ]))
    return AlertFeed(mock_client, overlay=overlay)


@pytest.fixture
def health_monitor() -> MagicMock:
    monitor = MagicMock(spec=HealthMonitor)
    monitor.get_report.return_value = HealthReport(
        status="healthy",
        reachable=True,
        checked_at=datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc),
        version="1.0.0",
    )
    return monitor


@pytest.fixture
def app(alert_feed, health_monitor):
    application = create_app()
    application.dependency_overrides[get_alert_feed] = lambda: alert_feed
    application.dependency_overrides[get_health_monitor] = lambda: health_monitor
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
