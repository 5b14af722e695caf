"""Tests for service wiring and the app lifespan."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from src.api import dependencies
from src.api.app import create_app
from src.config.settings import get_settings
from src.upstream.client import SafetyBackendClient


@pytest.fixture
def backend(mock_client):
    with patch.object(SafetyBackendClient, "from_settings", return_value=mock_client):
        yield mock_client


@pytest.fixture(autouse=True)
def _settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestStartServices:
    @pytest.mark.asyncio
    async def test_opens_client_and_starts_pollers(self, backend):
        await dependencies.start_services()
        try:
            backend.open.assert_awaited_once()
            assert dependencies.get_alert_feed().is_running
        finally:
            await dependencies.cleanup_dependencies()

        backend.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_without_polling_client_is_still_opened(self, backend):
        await dependencies.start_services(poll=False)
        try:
            backend.open.assert_awaited_once()
            feed = dependencies.get_alert_feed()
            assert not feed.is_running
            assert feed.get_loading_state().is_idle
        finally:
            await dependencies.cleanup_dependencies()


class TestLifespan:
    def test_poll_on_startup_disabled_keeps_api_writable(self, backend, monkeypatch):
        monkeypatch.setenv("POLL_ON_STARTUP", "false")
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)

        with TestClient(create_app()) as client:
            backend.open.assert_awaited_once()
            assert not dependencies.get_alert_feed().is_running

            response = client.get("/health")
            assert response.status_code == 200
            assert response.json()["feed"]["state"] == "idle"

        backend.close.assert_awaited_once()
