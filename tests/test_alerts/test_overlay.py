"""Tests for the optimistic mutation overlay."""

import asyncio

import pytest

from src.alerts.adapters import normalize_incident, normalize_message, normalize_sos
from src.alerts.errors import AlertNotFoundError, MutationRejectedError
from src.alerts.overlay import MutationOverlay
from src.alerts.schemas import AlertSnapshot
from src.upstream.http_client import HTTPClientError


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def overlay(mock_client, clock):
    return MutationOverlay(mock_client, retention_seconds=60.0, clock=clock)


def _snapshot(*records):
    """Build a snapshot from (normalizer, raw record) pairs."""
    return AlertSnapshot.build([normalize(record) for normalize, record in records])


@pytest.fixture
def baseline(message_record, sos_record, incident_record):
    return _snapshot(
        (normalize_sos, sos_record),
        (normalize_message, message_record),
        (normalize_incident, incident_record),
    )


class TestMarkRead:
    @pytest.mark.asyncio
    async def test_applies_without_new_poll(self, overlay, baseline, mock_client):
        overlay.apply_snapshot(baseline)

        assert await overlay.mark_read("msg-1") is True

        alert = overlay.effective_snapshot.get("msg-1")
        assert alert.is_read is True
        assert alert.status == "READ"
        assert overlay.effective_snapshot.stats.unread == 2
        overlay.effective_snapshot.check_consistency()
        mock_client.mark_message_read.assert_awaited_once_with("msg-1")

    @pytest.mark.asyncio
    async def test_survives_poll_that_has_not_caught_up(
        self, overlay, message_record, mock_client,
    ):
        overlay.apply_snapshot(_snapshot((normalize_message, message_record)))
        await overlay.mark_read("msg-1")

        # Backend has not reflected the change yet
        overlay.apply_snapshot(_snapshot((normalize_message, message_record)))
        assert overlay.effective_snapshot.get("msg-1").is_read is True
        assert overlay.effective_snapshot.stats.unread == 0
        assert "msg-1" in overlay.pending

        # Backend caught up
        message_record["is_read"] = True
        overlay.apply_snapshot(_snapshot((normalize_message, message_record)))
        assert overlay.pending == {}
        assert overlay.effective_snapshot.stats.unread == 0
        assert overlay.effective_snapshot.stats.total == 1

    @pytest.mark.asyncio
    async def test_unknown_id_raises_without_network_call(self, overlay, baseline, mock_client):
        overlay.apply_snapshot(baseline)

        with pytest.raises(AlertNotFoundError):
            await overlay.mark_read("nope")

        mock_client.mark_message_read.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_read_is_noop(self, overlay, message_record, mock_client):
        message_record["is_read"] = True
        overlay.apply_snapshot(_snapshot((normalize_message, message_record)))

        assert await overlay.mark_read("msg-1") is False
        mock_client.mark_message_read.assert_not_awaited()


class TestResolve:
    @pytest.mark.asyncio
    async def test_sos_resolve_sets_read_without_new_poll(self, overlay, mock_client, clock):
        record = {
            "id": "s1",
            "status": "NEED_HELP",
            "ability": "BLIND",
            "created_at": "2026-03-01T10:00:00Z",
        }
        overlay.apply_snapshot(_snapshot((normalize_sos, record)))
        before = overlay.effective_snapshot.get("s1")
        assert before.severity == "critical"
        assert before.is_read is False
        assert before.title == "SOS Alert (BLIND)"

        assert await overlay.resolve(before) is True

        after = overlay.effective_snapshot.get("s1")
        assert after.is_read is True
        assert after.status == "SAFE"
        mock_client.resolve_sos.assert_awaited_once_with("s1")

    @pytest.mark.asyncio
    async def test_routes_incident_to_incident_endpoint(self, overlay, baseline, mock_client):
        overlay.apply_snapshot(baseline)

        await overlay.resolve("inc-1")

        mock_client.resolve_incident.assert_awaited_once_with("inc-1")
        mock_client.resolve_sos.assert_not_awaited()
        assert overlay.effective_snapshot.get("inc-1").status == "RESOLVED"

    @pytest.mark.asyncio
    async def test_second_resolve_is_noop(self, overlay, baseline, mock_client):
        overlay.apply_snapshot(baseline)

        assert await overlay.resolve("sos-1") is True
        assert await overlay.resolve("sos-1") is False

        mock_client.resolve_sos.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_verified_incident_resolve_is_noop(self, overlay, incident_record, mock_client):
        incident_record["status"] = "VERIFIED"
        overlay.apply_snapshot(_snapshot((normalize_incident, incident_record)))

        assert await overlay.resolve("inc-1") is False

        mock_client.resolve_incident.assert_not_awaited()
        assert overlay.pending == {}
        assert overlay.effective_snapshot.get("inc-1").status == "VERIFIED"

    @pytest.mark.asyncio
    async def test_concurrent_resolve_single_backend_call(self, overlay, baseline, mock_client):
        overlay.apply_snapshot(baseline)
        release = asyncio.Event()

        async def slow_resolve(sos_id):
            await release.wait()
            return {"success": True}

        mock_client.resolve_sos.side_effect = slow_resolve

        first = asyncio.create_task(overlay.resolve("sos-1"))
        await asyncio.sleep(0)
        # Optimistic state is visible while the call is in flight
        assert overlay.effective_snapshot.get("sos-1").is_read is True

        assert await overlay.resolve("sos-1") is False
        release.set()
        assert await first is True
        mock_client.resolve_sos.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_backend_failure_rolls_back(self, overlay, baseline, mock_client):
        overlay.apply_snapshot(baseline)
        mock_client.resolve_sos.side_effect = HTTPClientError("Forbidden", status_code=403)

        with pytest.raises(MutationRejectedError) as exc_info:
            await overlay.resolve("sos-1")

        assert exc_info.value.status_code == 403
        alert = overlay.effective_snapshot.get("sos-1")
        assert alert.is_read is False
        assert alert.status == "TRIGGERED"
        assert overlay.pending == {}
        assert overlay.effective_snapshot.stats.unread == 3

    @pytest.mark.asyncio
    async def test_synthesized_id_rejected_locally(self, overlay, sos_record, mock_client):
        del sos_record["id"]
        overlay.apply_snapshot(_snapshot((normalize_sos, sos_record)))
        alert_id = overlay.effective_snapshot.alerts[0].id

        with pytest.raises(MutationRejectedError):
            await overlay.resolve(alert_id)

        mock_client.resolve_sos.assert_not_awaited()
        assert overlay.pending == {}

    @pytest.mark.asyncio
    async def test_poll_during_in_flight_resolve_keeps_optimistic_state(
        self, overlay, baseline, mock_client, message_record, sos_record, incident_record,
    ):
        overlay.apply_snapshot(baseline)
        release = asyncio.Event()

        async def slow_resolve(sos_id):
            await release.wait()
            return {"success": True}

        mock_client.resolve_sos.side_effect = slow_resolve
        task = asyncio.create_task(overlay.resolve("sos-1"))
        await asyncio.sleep(0)

        message_record["is_read"] = True
        overlay.apply_snapshot(_snapshot(
            (normalize_sos, sos_record),
            (normalize_message, message_record),
            (normalize_incident, incident_record),
        ))

        effective = overlay.effective_snapshot
        assert effective.get("sos-1").is_read is True
        assert effective.get("msg-1").is_read is True
        assert effective.stats.unread == 1
        effective.check_consistency()

        release.set()
        assert await task is True
        assert "sos-1" in overlay.pending

    @pytest.mark.asyncio
    async def test_rejection_after_poll_rolls_back_to_new_baseline(
        self, overlay, baseline, mock_client, message_record, sos_record, incident_record,
    ):
        overlay.apply_snapshot(baseline)
        release = asyncio.Event()

        async def failing_resolve(sos_id):
            await release.wait()
            raise HTTPClientError("Bad Gateway", status_code=502)

        mock_client.resolve_sos.side_effect = failing_resolve
        task = asyncio.create_task(overlay.resolve("sos-1"))
        await asyncio.sleep(0)

        message_record["is_read"] = True
        newer = overlay.apply_snapshot(_snapshot(
            (normalize_sos, sos_record),
            (normalize_message, message_record),
            (normalize_incident, incident_record),
        ))
        assert newer.get("sos-1").is_read is True

        release.set()
        with pytest.raises(MutationRejectedError):
            await task

        effective = overlay.effective_snapshot
        assert overlay.pending == {}
        assert effective.get("sos-1").is_read is False
        # The newer baseline is kept, not the one the mutation started from
        assert effective.get("msg-1").is_read is True
        assert effective.stats.unread == 2
        effective.check_consistency()


class TestReplay:
    @pytest.mark.asyncio
    async def test_uncorroborated_mutation_expires(self, overlay, baseline, clock):
        overlay.apply_snapshot(baseline)
        await overlay.resolve("inc-1")

        clock.now += 30
        overlay.apply_snapshot(baseline)
        assert overlay.effective_snapshot.get("inc-1").is_read is True

        clock.now += 31
        overlay.apply_snapshot(baseline)
        assert overlay.pending == {}
        assert overlay.effective_snapshot.get("inc-1").is_read is False

    @pytest.mark.asyncio
    async def test_other_closed_status_corroborates_resolve(
        self, overlay, incident_record,
    ):
        overlay.apply_snapshot(_snapshot((normalize_incident, incident_record)))
        await overlay.resolve("inc-1")

        incident_record["status"] = "VERIFIED"
        overlay.apply_snapshot(_snapshot((normalize_incident, incident_record)))

        assert overlay.pending == {}
        alert = overlay.effective_snapshot.get("inc-1")
        assert alert.status == "VERIFIED"
        assert alert.is_read is True

    @pytest.mark.asyncio
    async def test_absent_target_kept_until_expiry(self, overlay, baseline, clock):
        overlay.apply_snapshot(baseline)
        await overlay.mark_read("msg-1")

        overlay.apply_snapshot(AlertSnapshot.empty())
        assert "msg-1" in overlay.pending
        assert overlay.effective_snapshot.stats.total == 0

        overlay.apply_snapshot(baseline)
        assert overlay.effective_snapshot.get("msg-1").is_read is True

        clock.now += 61
        overlay.apply_snapshot(AlertSnapshot.empty())
        assert overlay.pending == {}

    def test_apply_snapshot_keeps_failed_sources(self, overlay, baseline):
        from src.alerts.schemas import SourceType

        partial = AlertSnapshot.build(
            baseline.alerts, failed_sources=frozenset({SourceType.SOS}),
        )
        effective = overlay.apply_snapshot(partial)

        assert effective.failed_sources == frozenset({SourceType.SOS})
        assert overlay.baseline is partial
