"""Tests for the sensesafe-dashboard CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from src.cli import main


def _json_output(result) -> dict:
    # Log lines may precede the document on stdout
    text = result.stdout
    return json.loads(text[text.find("{\n"):])


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def backend(mock_client):
    mock_client.__aenter__.return_value = mock_client
    with patch(
        "src.upstream.client.SafetyBackendClient.from_settings",
        return_value=mock_client,
    ):
        yield mock_client


class TestSnapshot:
    """Test the `snapshot` command."""

    def test_prints_alerts_as_json(self, runner: CliRunner, backend) -> None:
        result = runner.invoke(main, ["snapshot"])

        assert result.exit_code == 0, result.output
        data = _json_output(result)
        assert [a["id"] for a in data["alerts"]] == ["sos-1", "msg-1", "inc-1"]
        assert data["stats"]["total"] == 3
        assert data["failed_sources"] == []
        backend.__aexit__.assert_awaited_once()

    def test_unread_only_and_limit(self, runner: CliRunner, backend, sos_record) -> None:
        sos_record["status"] = "SAFE"

        result = runner.invoke(main, ["snapshot", "--unread-only", "--limit", "1"])

        assert result.exit_code == 0, result.output
        data = _json_output(result)
        assert [a["id"] for a in data["alerts"]] == ["msg-1"]
        # Stats still cover the whole snapshot
        assert data["stats"]["unread"] == 2

    def test_total_failure_exits_nonzero(self, runner: CliRunner, backend) -> None:
        backend.fetch_messages.side_effect = ConnectionError()
        backend.fetch_sos.side_effect = ConnectionError()
        backend.fetch_incidents.side_effect = ConnectionError()

        result = runner.invoke(main, ["snapshot"])

        assert result.exit_code == 1
        assert "All alert sources unavailable" in result.output


class TestHealth:
    """Test the `health` command."""

    def test_healthy_backend(self, runner: CliRunner, backend) -> None:
        result = runner.invoke(main, ["health"])

        assert result.exit_code == 0, result.output
        assert "status: healthy" in result.output
        assert "version: 1.0.0" in result.output
        assert "Backend healthy!" in result.output

    def test_unreachable_backend(self, runner: CliRunner, backend) -> None:
        backend.fetch_health.side_effect = ConnectionError("refused")

        result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "status: unreachable" in result.output


class TestServe:
    """Test the `serve` command."""

    def test_runs_uvicorn_with_factory(self, runner: CliRunner) -> None:
        with patch("uvicorn.run") as mock_run, \
                patch("src.cli.get_metrics") as mock_metrics:
            result = runner.invoke(main, ["serve", "--port", "9999", "--metrics-port", "9998"])

        assert result.exit_code == 0, result.output
        mock_metrics.return_value.start_server.assert_called_once_with(port=9998)
        args, kwargs = mock_run.call_args
        assert args == ("src.api.app:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9999
