"""Shared HTTP plumbing for the REST API clients."""

import logging
from typing import Any

import httpx

from devicelab.config import settings
from devicelab.core.retry import RetryPolicy

logger = logging.getLogger(__name__)


class BaseApiClient:
    """HTTP client that sends every request through the retry policy."""

    service_name = "API"

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: int | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL every relative path is resolved against
            headers: Headers sent with every request
            timeout: Request timeout in seconds, defaults to HTTP_TIMEOUT_SECONDS
            retry_policy: Retry policy, defaults to the configured one
            transport: Optional transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.client = httpx.AsyncClient(
            timeout=self.timeout, headers=headers, transport=transport
        )

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request with retries and raise for error statuses.

        Raises:
            httpx.HTTPStatusError: If the final response is a 4xx or 5xx
            httpx.TransportError: If the request could not be sent
        """
        url = self._url(path)
        try:
            response = await self.retry_policy.call(
                lambda: self.client.request(method, url, **kwargs)
            )
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info(f"{self.service_name} resource not found: {method} {url}")
            else:
                logger.error(
                    f"{self.service_name} returned error: {e.response.status_code} - {e.response.text}"
                )
            raise
        except httpx.TimeoutException as e:
            logger.error(f"{self.service_name} request timed out: {e}")
            raise
        except httpx.TransportError as e:
            logger.error(f"{self.service_name} network error: {e}")
            raise

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


def google_api_headers() -> dict[str, str]:
    """Headers for Google Cloud REST APIs."""
    headers = {
        "Content-Type": "application/json;charset=utf-8",
        "Accept": "application/json",
    }
    if settings.GCP_ACCESS_TOKEN:
        headers["Authorization"] = f"Bearer {settings.GCP_ACCESS_TOKEN}"
    return headers
