"""
Async HTTP client wrapper for provider requests.
Single attempt per call (the throttle owns the retry cadence), timeout
management, typed failures, and metrics collection.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.errors import DecodeError, UpstreamError, redact, truncate
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    UPSTREAM_LATENCY,
    UPSTREAM_QUOTA_REMAINING,
    UPSTREAM_REQUESTS,
)

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async HTTP client tailored for sports data provider APIs.
    Converts every failure into UpstreamError/DecodeError with the api key
    redacted from the detail, and records metrics per request.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        api_key: str = "",
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        detail_max_len: int | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_s or settings.provider_request_timeout_s
        self._detail_max_len = detail_max_len or settings.upstream_detail_max_len
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.quota_remaining: Optional[int] = None

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def api_key(self) -> str:
        return self._api_key

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _detail(self, text: str) -> str:
        return truncate(redact(text, self._api_key), self._detail_max_len)

    def _track_quota(self, resp: httpx.Response) -> None:
        """Record the remaining-request quota header when the provider sends it."""
        remaining = resp.headers.get("x-requests-remaining")
        try:
            if remaining is not None:
                self.quota_remaining = int(float(remaining))
                UPSTREAM_QUOTA_REMAINING.labels(provider=self._provider).set(self.quota_remaining)
        except ValueError:
            logger.debug("provider_quota_header_invalid", provider=self._provider, remaining=remaining)

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        Perform one GET request and decode the JSON body.

        Args:
            path: API path relative to base_url.
            params: Query parameters.

        Returns:
            The decoded JSON document.

        Raises:
            UpstreamError: Transport failure or non-2xx status.
            DecodeError: Body is not valid JSON.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        status = "error"
        try:
            try:
                resp = await self._client.get(path, params=params)
            except httpx.TimeoutException as exc:
                status = "timeout"
                logger.warning("upstream_timeout", provider=self._provider, path=path)
                raise UpstreamError(self._provider, self._detail(f"timeout: {type(exc).__name__}")) from exc
            except httpx.HTTPError as exc:
                logger.warning(
                    "upstream_transport_error",
                    provider=self._provider,
                    path=path,
                    error=self._detail(str(exc)),
                )
                raise UpstreamError(
                    self._provider, self._detail(f"{type(exc).__name__}: {exc}")
                ) from exc

            status = str(resp.status_code)
            self._track_quota(resp)

            if resp.is_error:
                logger.error(
                    "upstream_http_error",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                )
                raise UpstreamError(self._provider, self._detail(resp.text), status=resp.status_code)

            try:
                data = resp.json()
            except ValueError as exc:
                status = "decode_error"
                logger.warning("upstream_decode_error", provider=self._provider, path=path)
                raise DecodeError(self._provider, self._detail(f"invalid JSON: {resp.text}")) from exc

            logger.debug(
                "upstream_request_success",
                provider=self._provider,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                quota_remaining=self.quota_remaining,
            )
            return data
        finally:
            UPSTREAM_REQUESTS.labels(provider=self._provider, status=status).inc()
            UPSTREAM_LATENCY.labels(provider=self._provider).observe(time.perf_counter() - start_time)
