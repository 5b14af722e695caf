"""Pytest fixtures for sensesafe-dashboard tests."""

from unittest.mock import AsyncMock

import pytest

from src.config.settings import Settings


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        backend_base_url="http://backend.test",
        backend_token="test-token",
        max_http_retries=0,
    )


@pytest.fixture
def message_record() -> dict:
    """A raw unread GENERAL message as returned by the admin messages endpoint."""
    return {
        "id": "msg-1",
        "user_id": "user-1",
        "user_name": "Asha",
        "message_type": "GENERAL",
        "title": "Water shortage",
        "content": "No water on floor 3",
        "is_read": False,
        "severity": "low",
        "created_at": "2026-03-01T10:00:00Z",
    }


@pytest.fixture
def sos_record() -> dict:
    """A raw active SOS record."""
    return {
        "id": "sos-1",
        "user_id": "user-2",
        "ability": "BLIND",
        "lat": 12.971598,
        "lng": 77.594566,
        "battery": 42,
        "status": "TRIGGERED",
        "created_at": "2026-03-01T10:05:00Z",
    }


@pytest.fixture
def incident_record() -> dict:
    """A raw pending incident report."""
    return {
        "id": "inc-1",
        "user_id": "user-3",
        "type": "FIRE",
        "description": "Smoke in corridor B",
        "lat": 12.9,
        "lng": 77.6,
        "risk_level": "HIGH",
        "risk_score": 0.82,
        "status": "PENDING",
        "image_url": "/uploads/inc-1.jpg",
        "created_at": "2026-03-01T09:55:00Z",
    }


@pytest.fixture
def mock_client(message_record, sos_record, incident_record) -> AsyncMock:
    """Backend client double serving one record per source."""
    client = AsyncMock()
    client.fetch_messages.return_value = [message_record]
    client.fetch_sos.return_value = [sos_record]
    client.fetch_incidents.return_value = [incident_record]
    client.mark_message_read.return_value = {"success": True}
    client.resolve_sos.return_value = {"success": True}
    client.resolve_incident.return_value = {"success": True}
    client.fetch_health.return_value = {"status": "healthy", "version": "1.0.0"}
    return client
