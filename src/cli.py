"""
Command-line interface for the SenseSafe operations dashboard.

Provides commands to run the dashboard API, poll the alert feed in the
foreground, and run one-shot diagnostic checks against the backend.

Usage:
    sensesafe-dashboard serve      # Run the dashboard API
    sensesafe-dashboard poll       # Poll and log the alert feed
    sensesafe-dashboard snapshot   # Print one aggregated snapshot as JSON
    sensesafe-dashboard health     # Check backend health
"""

import asyncio
import json
import signal
import sys

import click

from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """SenseSafe Dashboard - Unified SOS, incident and message alerts."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()

    # Initialize tracing if enabled
    settings = get_settings()
    if settings.tracing_enabled:
        from src.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the dashboard API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    # Start metrics server on separate port
    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def poll(metrics: bool) -> None:
    """Run the alert feed poller in the foreground until interrupted."""
    import structlog

    from src.alerts.service import AlertFeed
    from src.upstream.client import SafetyBackendClient

    logger = structlog.get_logger()

    async def run():
        if metrics:
            get_metrics().start_server(port=get_settings().metrics_port)

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)

        async with SafetyBackendClient.from_settings() as client:
            feed = AlertFeed(client)
            feed.start()
            logger.info("Alert poller running")
            try:
                await stop_event.wait()
            finally:
                await feed.stop()
                logger.info("Alert poller stopped")

    asyncio.run(run())


@main.command()
@click.option("--unread-only", is_flag=True, help="Only include unread alerts")
@click.option("--limit", default=None, type=int, help="Maximum alerts to print")
def snapshot(unread_only: bool, limit: int | None) -> None:
    """Aggregate all sources once and print the result as JSON."""
    from src.alerts.aggregator import AlertAggregator
    from src.alerts.projections import list_alerts
    from src.upstream.client import SafetyBackendClient

    async def run():
        async with SafetyBackendClient.from_settings() as client:
            return await AlertAggregator(client).aggregate()

    result = asyncio.run(run())
    views = list_alerts(result, unread_only=unread_only, limit=limit)

    click.echo(json.dumps(
        {
            "alerts": [view.to_dict() for view in views],
            "stats": result.stats.to_dict(),
            "failed_sources": sorted(s.value for s in result.failed_sources),
        },
        indent=2,
    ))

    if result.is_total_failure:
        click.echo(click.style("All alert sources unavailable!", fg="red"), err=True)
        sys.exit(1)


@main.command()
def health() -> None:
    """Check health of the SenseSafe backend."""
    from src.alerts.service import HealthMonitor
    from src.upstream.client import SafetyBackendClient

    async def check():
        async with SafetyBackendClient.from_settings() as client:
            return await HealthMonitor(client).check()

    report = asyncio.run(check())
    settings = get_settings()

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)
    click.echo(f"  backend: {settings.backend_base_url}")

    icon = "✓" if report.healthy else "✗"
    color = "green" if report.healthy else "red"
    click.echo(click.style(f"  {icon} status: {report.status}", fg=color))
    if report.version:
        click.echo(f"  version: {report.version}")

    click.echo("-" * 40)

    if report.healthy:
        click.echo(click.style("Backend healthy!", fg="green"))
        sys.exit(0)
    else:
        click.echo(click.style("Backend unhealthy!", fg="red"))
        sys.exit(1)


if __name__ == "__main__":
    main()
