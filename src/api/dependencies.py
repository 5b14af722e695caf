"""
Dependency injection for FastAPI endpoints.
"""

from src.alerts.config import AlertFeedConfig
from src.alerts.service import AlertFeed, HealthMonitor
from src.upstream.client import SafetyBackendClient

# Global service instances (created on first use, one per process)
_backend_client: SafetyBackendClient | None = None
_alert_feed: AlertFeed | None = None
_health_monitor: HealthMonitor | None = None


def get_backend_client() -> SafetyBackendClient:
    """Get the shared SenseSafe backend client."""
    global _backend_client

    if _backend_client is None:
        _backend_client = SafetyBackendClient.from_settings()

    return _backend_client


def get_alert_feed() -> AlertFeed:
    """Get the alert feed singleton."""
    global _alert_feed

    if _alert_feed is None:
        _alert_feed = AlertFeed(get_backend_client(), config=AlertFeedConfig())

    return _alert_feed


def get_health_monitor() -> HealthMonitor:
    """Get the upstream health monitor singleton."""
    global _health_monitor

    if _health_monitor is None:
        _health_monitor = HealthMonitor(get_backend_client(), config=AlertFeedConfig())

    return _health_monitor


async def start_services(poll: bool = True) -> None:
    """
    Open the backend client and, when ``poll`` is set, start both pollers.

    The client is opened either way so mutations and on-demand refreshes
    work when polling is left to another process.
    """
    await get_backend_client().open()
    if poll:
        get_alert_feed().start()
        get_health_monitor().start()


async def cleanup_dependencies() -> None:
    """Stop pollers and close the backend client."""
    global _backend_client, _alert_feed, _health_monitor

    if _alert_feed is not None:
        await _alert_feed.stop()
        _alert_feed = None

    if _health_monitor is not None:
        await _health_monitor.stop()
        _health_monitor = None

    if _backend_client is not None:
        await _backend_client.close()
        _backend_client = None
