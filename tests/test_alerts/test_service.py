"""Tests for AlertFeed and HealthMonitor wiring."""

import pytest

from src.alerts.config import AlertFeedConfig
from src.alerts.errors import AlertNotFoundError
from src.alerts.scheduler import PollState
from src.alerts.service import TOTAL_FAILURE_ERROR, AlertFeed, HealthMonitor


@pytest.fixture
def config():
    return AlertFeedConfig(poll_interval_seconds=60.0, health_poll_interval_seconds=60.0)


@pytest.fixture
def feed(mock_client, config):
    return AlertFeed(mock_client, config=config)


class TestAlertFeed:
    def test_empty_before_first_poll(self, feed):
        snapshot = feed.get_snapshot()

        assert snapshot.alerts == ()
        assert feed.get_loading_state().state is PollState.IDLE

    @pytest.mark.asyncio
    async def test_refresh_publishes_snapshot(self, feed):
        snapshot = await feed.refresh()

        assert snapshot.stats.total == 3
        assert feed.get_snapshot() is snapshot
        assert feed.get_loading_state().state is PollState.READY

    @pytest.mark.asyncio
    async def test_total_failure_is_stale_with_error(self, feed, mock_client):
        mock_client.fetch_messages.side_effect = ConnectionError()
        mock_client.fetch_sos.side_effect = ConnectionError()
        mock_client.fetch_incidents.side_effect = ConnectionError()

        snapshot = await feed.refresh()

        assert snapshot.alerts == ()
        state = feed.get_loading_state()
        assert state.state is PollState.READY_STALE
        assert state.error == TOTAL_FAILURE_ERROR

    @pytest.mark.asyncio
    async def test_partial_failure_is_ready(self, feed, mock_client):
        mock_client.fetch_sos.side_effect = ConnectionError()

        snapshot = await feed.refresh()

        assert snapshot.stats.total == 2
        assert feed.get_loading_state().state is PollState.READY

    @pytest.mark.asyncio
    async def test_resolve_then_poll_keeps_optimistic_state(self, feed, mock_client):
        await feed.refresh()

        assert await feed.resolve("sos-1") is True
        assert feed.get_snapshot().get("sos-1").is_read is True

        # Backend still reports the SOS as active
        await feed.refresh()
        assert feed.get_snapshot().get("sos-1").is_read is True
        assert feed.get_snapshot().stats.unread == 2

    @pytest.mark.asyncio
    async def test_mark_read_unknown_id(self, feed):
        await feed.refresh()

        with pytest.raises(AlertNotFoundError):
            await feed.mark_read("missing")

    @pytest.mark.asyncio
    async def test_start_and_stop(self, feed, mock_client):
        feed.start()
        assert feed.is_running

        await feed.stop()

        assert not feed.is_running
        assert feed.get_loading_state().state is PollState.IDLE


class TestHealthMonitor:
    @pytest.mark.asyncio
    async def test_healthy_backend(self, mock_client, config):
        monitor = HealthMonitor(mock_client, config=config)

        report = await monitor.refresh()

        assert report.healthy
        assert report.reachable
        assert report.version == "1.0.0"
        assert monitor.get_report() is report

    @pytest.mark.asyncio
    async def test_unreachable_backend_reported(self, mock_client, config):
        mock_client.fetch_health.side_effect = ConnectionError("refused")
        monitor = HealthMonitor(mock_client, config=config)

        report = await monitor.check()

        assert report.status == "unreachable"
        assert not report.reachable
        assert not report.healthy

    @pytest.mark.asyncio
    async def test_degraded_status_not_healthy(self, mock_client, config):
        mock_client.fetch_health.return_value = {"status": "degraded"}
        monitor = HealthMonitor(mock_client, config=config)

        report = await monitor.check()

        assert report.reachable
        assert not report.healthy
        assert report.to_dict()["healthy"] is False
