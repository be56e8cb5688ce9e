"""
Async HTTP client wrapper for remote source requests.
Single attempt per call: transient failures are absorbed by the next poll.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import REMOTE_LATENCY, track_latency

logger = get_logger(__name__)


class RemoteHTTPClient:
    """
    Async HTTP client for the remote discussion API.
    Handles the client lifecycle, timeouts and latency metrics.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.remote_timeout_s
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """
        Perform a single GET request.

        Args:
            path: API path relative to base_url.
            params: Query parameters.

        Returns:
            httpx.Response with a 2xx status.

        Raises:
            httpx.HTTPStatusError: On any non-2xx response.
            httpx.HTTPError: On connection errors and timeouts.
        """
        if not self._client:
            raise RuntimeError("RemoteHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        with track_latency(REMOTE_LATENCY):
            resp = await self._client.get(path, params=params)

        if not resp.is_success:
            raise httpx.HTTPStatusError(
                f"Failed to load page, status code: {resp.status_code}",
                request=resp.request,
                response=resp,
            )

        logger.debug(
            "remote_request_success",
            path=path,
            status=resp.status_code,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return resp
