from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from converge.config.settings import get_settings
from converge.core.errors import TransportError

logger = structlog.get_logger()

# Only failures where the request never reached the server are retried.
RETRYABLE_EXCEPTIONS = (httpx.ConnectError, httpx.ConnectTimeout)


class ApiClient:
    """Thin JSON HTTP client.

    Non-2xx responses are returned to the caller untouched; only network
    failures raise (as :class:`TransportError`). Handlers decide what a
    status code means, e.g. a 404 while deleting is "already gone".
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_factor: float = 0.5,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.api_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.http_timeout
        self._max_retries = max(1, max_retries if max_retries is not None else settings.http_max_retries)
        self._backoff_factor = backoff_factor
        self._default_headers = dict(headers or {})
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {"Content-Type": "application/json"}

    def _merge_headers(self, headers: dict[str, str] | None) -> httpx.Headers:
        # httpx.Headers keys are case-insensitive, so caller values replace defaults.
        merged = httpx.Headers(self._headers())
        merged.update(self._default_headers)
        if headers:
            merged.update(headers)
        return merged

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute an HTTP request, retrying connection failures."""
        url = f"{self._base_url}{path}"
        req_headers = self._merge_headers(headers)

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff_factor, min=0, max=10),
                reraise=True,
            ):
                with attempt:
                    async with httpx.AsyncClient(
                        timeout=self._timeout,
                        transport=self._transport,
                    ) as client:
                        response = await client.request(
                            method,
                            url,
                            params=params,
                            json=json,
                            headers=req_headers,
                        )
        except httpx.HTTPError as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise TransportError(
                f"{method} {url} failed: {exc}",
                details={"method": method, "url": url},
            ) from exc

        if not response.is_success:
            logger.debug("http_status", status=response.status_code, method=method, url=url)
        return response

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute GET request."""
        return await self.request("GET", path, params=params, headers=headers)

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute POST request with a JSON body."""
        return await self.request("POST", path, json=body, headers=headers)

    async def patch(
        self,
        path: str,
        body: Any = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute PATCH request with a JSON body."""
        return await self.request("PATCH", path, json=body, headers=headers)

    async def delete(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute DELETE request."""
        return await self.request("DELETE", path, headers=headers)
