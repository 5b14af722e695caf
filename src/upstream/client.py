"""
SenseSafe backend client.

Maps the alert feed's collaborator contract onto the backend's REST
endpoints. Each fetch returns the raw record list from its collection;
each mutation returns the backend's JSON body (unused by the core beyond
success).

Response envelopes:
- GET /api/messages/admin/all  -> {"messages": [...]}
- GET /api/sos/user            -> {"sos_alerts": [...]}
- GET /api/incidents/user      -> {"incidents": [...]}
"""

from typing import Any

import structlog

from src.config.settings import Settings, get_settings
from src.upstream.http_client import HTTPClient, HTTPClientError, RetryConfig

logger = structlog.get_logger(__name__)

MESSAGES_PATH = "/api/messages/admin/all"
SOS_PATH = "/api/sos/user"
INCIDENTS_PATH = "/api/incidents/user"
HEALTH_PATH = "/health"


class UpstreamPayloadError(HTTPClientError):
    """The backend answered 2xx but the body is not the expected envelope."""

    pass


class SafetyBackendClient:
    """
    Async client for the SenseSafe backend.

    Usage:
        async with SafetyBackendClient.from_settings() as client:
            messages = await client.fetch_messages()
            await client.resolve_sos("sos-123")
    """

    def __init__(self, http: HTTPClient, page_size: int = 100) -> None:
        self._http = http
        self._page_size = page_size

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SafetyBackendClient":
        """Build a client from application settings."""
        settings = settings or get_settings()
        http = HTTPClient(
            base_url=settings.backend_base_url,
            retry_config=RetryConfig(
                max_retries=settings.max_http_retries,
                max_backoff_seconds=settings.max_backoff_seconds,
            ),
            timeout=settings.request_timeout_seconds,
            token=settings.backend_token,
        )
        return cls(http, page_size=settings.source_page_size)

    async def __aenter__(self) -> "SafetyBackendClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def open(self) -> None:
        await self._http.open()

    async def close(self) -> None:
        await self._http.close()

    @staticmethod
    def _json(response: Any, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamPayloadError(
                f"Invalid JSON from {path}: {e}",
                status_code=response.status_code,
            ) from e

    async def _fetch_collection(
        self,
        path: str,
        key: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        response = await self._http.get(path, params=params)
        body = self._json(response, path)

        if not isinstance(body, dict):
            raise UpstreamPayloadError(
                f"Expected an object from {path}, got {type(body).__name__}",
                status_code=response.status_code,
            )

        # A missing key is an empty collection, not an error
        records = body.get(key) or []
        if not isinstance(records, list):
            raise UpstreamPayloadError(
                f"Expected {key!r} to be a list in response from {path}",
                status_code=response.status_code,
            )
        logger.debug("Fetched collection", path=path, records=len(records))
        return records

    async def fetch_messages(self) -> list[dict[str, Any]]:
        return await self._fetch_collection(
            MESSAGES_PATH, "messages", params={"page_size": self._page_size},
        )

    async def fetch_sos(self) -> list[dict[str, Any]]:
        return await self._fetch_collection(SOS_PATH, "sos_alerts")

    async def fetch_incidents(self) -> list[dict[str, Any]]:
        return await self._fetch_collection(INCIDENTS_PATH, "incidents")

    async def mark_message_read(self, message_id: str) -> Any:
        response = await self._http.post(f"/api/messages/admin/{message_id}/read")
        return self._json(response, "mark_message_read") if response.content else None

    async def resolve_sos(self, sos_id: str) -> Any:
        response = await self._http.patch(f"/api/admin/sos/{sos_id}/resolve")
        return self._json(response, "resolve_sos") if response.content else None

    async def resolve_incident(self, incident_id: str) -> Any:
        response = await self._http.patch(f"/api/admin/incidents/{incident_id}/resolve")
        return self._json(response, "resolve_incident") if response.content else None

    async def fetch_health(self) -> dict[str, Any]:
        response = await self._http.get(HEALTH_PATH)
        body = self._json(response, HEALTH_PATH)
        return body if isinstance(body, dict) else {}
