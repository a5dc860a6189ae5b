"""
Abstract base class for upstream sports data providers.
Defines the contract every provider adapter implements.
"""
from __future__ import annotations

import abc
import time
from typing import Any, Optional

from shared.errors import DecodeError, UpstreamError
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class BaseProvider(abc.ABC):
    """
    Abstract base class for upstream adapters.

    Each adapter issues exactly one HTTP call per fetch method and returns
    the raw decoded payload (or a lightly shaped version of it). The base
    class handles HTTP lifecycle, timing and failure logging; failures are
    re-raised so the caller decides how to degrade.
    """

    def __init__(self, name: ProviderName, http_client: ProviderHTTPClient) -> None:
        self._name = name
        self._http = http_client

    @property
    def name(self) -> ProviderName:
        return self._name

    @property
    def quota_remaining(self) -> Optional[int]:
        return self._http.quota_remaining

    async def start(self) -> None:
        """Initialize the provider HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the provider HTTP client."""
        await self._http.close()

    async def _get(self, operation: str, path: str, params: dict[str, Any] | None = None) -> Any:
        """Issue one GET with auth params merged in; log outcome with timing."""
        merged = {**(params or {}), **self._auth_params()}
        start = time.perf_counter()
        try:
            data = await self._http.get_json(path, params=merged)
        except UpstreamError as exc:
            logger.warning(
                f"provider_{operation}_error",
                provider=self._name.value,
                status=exc.status,
                decode=isinstance(exc, DecodeError),
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        logger.info(
            f"provider_{operation}_ok",
            provider=self._name.value,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return data

    @staticmethod
    def _expect_list(provider: ProviderName, data: Any, what: str) -> list[dict[str, Any]]:
        """Top-level payload must be a list; non-dict items are dropped."""
        if not isinstance(data, list):
            raise DecodeError(provider.value, f"expected a JSON array of {what}, got {type(data).__name__}")
        return [item for item in data if isinstance(item, dict)]

    # ── Abstract methods (each provider implements these) ───────────────
    @abc.abstractmethod
    def _auth_params(self) -> dict[str, str]:
        """Query parameters that authenticate requests to this provider."""
        ...
