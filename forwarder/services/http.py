from collections.abc import Mapping
from contextlib import asynccontextmanager

import httpx
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from forwarder.core.logging import get_logger
from forwarder.core.settings import get_settings
from forwarder.utils.error_logger import log_upstream_error

logger = get_logger(__name__)

# Connection-scoped and body-encoding headers, never copied across hops
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)


class NonRetryableError(Exception):
    """Exception for upstream errors that should not be retried."""


def categorize_http_error(error: httpx.HTTPStatusError) -> Exception:
    """Client errors are final, server errors may be retried."""
    status_code = error.response.status_code
    if 500 <= status_code < 600:
        return error
    return NonRetryableError(f"Non-retryable HTTP {status_code}: {error}")


def forwardable_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Drop hop-by-hop headers from a header mapping."""
    return {k: v for k, v in headers.items() if k.lower() not in HOP_BY_HOP_HEADERS}


class HttpService:
    """Async HTTP client for the upstream feed with retry on transient errors."""

    def __init__(self, timeout: float | None = None):
        settings = get_settings()
        self.timeout = httpx.Timeout(
            timeout=timeout or settings.http_timeout_seconds,
            connect=10.0,
        )
        self.headers = {"User-Agent": f"{settings.app_name}/{settings.version}"}

    @asynccontextmanager
    async def get_client(self):
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers=self.headers,
        ) as client:
            yield client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=8),
        retry=retry_if_not_exception_type(NonRetryableError),
        reraise=True,
    )
    async def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        *,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """
        Send a request to the upstream with retry logic.

        Args:
            method: HTTP method (GET or HEAD)
            url: URL to request
            headers: Additional headers, hop-by-hop headers are dropped
            raise_for_status: When False, 4xx responses are returned as-is;
                5xx responses are still retried

        Returns:
            httpx.Response object

        Raises:
            NonRetryableError: For 4xx responses when raise_for_status is set
            httpx.HTTPError: When retries are exhausted
        """
        request_headers = self.headers.copy()
        if headers:
            request_headers.update(forwardable_headers(headers))

        async with self.get_client() as client:
            logger.debug(f"{method} upstream {url}")
            try:
                response = await client.request(method, url, headers=request_headers)
                if raise_for_status or response.is_server_error:
                    response.raise_for_status()
                logger.debug(f"Upstream {method} {url}: {response.status_code}")
                return response
            except httpx.HTTPStatusError as e:
                log_upstream_error(url, e, method=method, response=e.response)
                raise categorize_http_error(e)
            except httpx.RequestError as e:
                log_upstream_error(url, e, method=method)
                raise

    async def fetch(self, url: str, headers: Mapping[str, str] | None = None) -> httpx.Response:
        return await self.request("GET", url, headers)

    async def head(self, url: str, headers: Mapping[str, str] | None = None) -> httpx.Response:
        """HEAD the upstream. Client errors come back as responses, not exceptions."""
        return await self.request("HEAD", url, headers, raise_for_status=False)


_http_service: HttpService | None = None


def get_http_service() -> HttpService:
    """Get the shared HTTP service instance."""
    global _http_service
    if _http_service is None:
        _http_service = HttpService()
    return _http_service
