"""
Async HTTP client wrapper for auxiliary and prediction provider requests.
Includes retry logic, timeout management, per-host rate limiting and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional, Protocol

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS

logger = get_logger(__name__)


class AcquiresSlot(Protocol):
    async def acquire(self) -> None: ...


class ProviderHTTPClient:
    """
    Async HTTP client tailored for third-party JSON APIs.
    Handles timeouts, retries, and records metrics per request.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        max_retries: int = 2,
        rate_limiter: Optional[AcquiresSlot] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.aux_request_timeout_s
        self._max_retries = max_retries
        self._default_headers = headers or {}
        self._rate_limiter = rate_limiter
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> str:
        return self._provider

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("GET", path, params=params, extra_headers=extra_headers)

    async def post(
        self,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("POST", path, params=params, json=json, extra_headers=extra_headers)

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform a request with retry, metrics, and structured logging.

        Raises:
            httpx.HTTPStatusError: On non-retryable HTTP errors.
            httpx.TimeoutException: If all retries are exhausted.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        last_exc: Optional[Exception] = None
        merged_headers = {**self._default_headers}
        if extra_headers:
            merged_headers.update(extra_headers)

        for attempt in range(1, self._max_retries + 1):
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()

            start_time = time.perf_counter()
            status = "unknown"

            try:
                resp = await self._client.request(
                    method, path, params=params, json=json, headers=merged_headers
                )
                status = str(resp.status_code)

                if resp.status_code == 429 and attempt < self._max_retries:
                    logger.warning(
                        "provider_rate_limited",
                        provider=self._provider,
                        path=path,
                        attempt=attempt,
                    )
                    retry_after = float(resp.headers.get("Retry-After", "2"))
                    await asyncio.sleep(min(retry_after, 10.0))
                    continue

                if resp.status_code >= 500 and attempt < self._max_retries:
                    logger.warning(
                        "provider_server_error",
                        provider=self._provider,
                        path=path,
                        status=resp.status_code,
                        attempt=attempt,
                    )
                    await asyncio.sleep(1.0 * attempt)
                    continue

                resp.raise_for_status()

                logger.debug(
                    "provider_request_success",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return resp

            except httpx.TimeoutException as exc:
                status = "timeout"
                last_exc = exc
                logger.warning(
                    "provider_timeout",
                    provider=self._provider,
                    path=path,
                    attempt=attempt,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)
                    continue

            except httpx.HTTPStatusError as exc:
                status = str(exc.response.status_code)
                last_exc = exc
                logger.error(
                    "provider_http_error",
                    provider=self._provider,
                    path=path,
                    status=exc.response.status_code,
                    attempt=attempt,
                )
                # Don't retry client errors
                if 400 <= exc.response.status_code < 500:
                    raise

            except httpx.HTTPError as exc:
                status = "error"
                last_exc = exc
                logger.error(
                    "provider_request_error",
                    provider=self._provider,
                    path=path,
                    error=str(exc),
                    attempt=attempt,
                )

            finally:
                UPSTREAM_REQUESTS.labels(provider=self._provider, status=status).inc()
                UPSTREAM_LATENCY.labels(provider=self._provider).observe(
                    time.perf_counter() - start_time
                )

        if last_exc:
            raise last_exc
        raise RuntimeError(f"Provider request failed after {self._max_retries} attempts")
