"""Transport to the SenseSafe backend (httpx with retries)."""

from src.upstream.client import SafetyBackendClient, UpstreamPayloadError
from src.upstream.http_client import (
    AuthenticationError,
    HTTPClient,
    HTTPClientError,
    RateLimitError,
    RetryConfig,
)

__all__ = [
    "AuthenticationError",
    "HTTPClient",
    "HTTPClientError",
    "RateLimitError",
    "RetryConfig",
    "SafetyBackendClient",
    "UpstreamPayloadError",
]
