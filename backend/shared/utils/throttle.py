"""
Dual-gate request throttle for upstream resources.

Two independent gates per resource:
  TTL: how stale a cached value may be before we want a new one
  WINDOW: at most one upstream attempt per fixed window, whatever the TTL

The window token is consumed when a fetch is granted, before the upstream
call is awaited, and stays consumed if the fetch fails. Windows are per
resource, not per parameter set: a parameter change after the window's fetch
was spent is answered with the value fetched under the previous parameters.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from shared.models.enums import Resource, ThrottleAction
from shared.utils.logging import get_logger
from shared.utils.metrics import THROTTLE_DECISIONS

logger = get_logger(__name__)

T = TypeVar("T")

ResourceKey = Union[Resource, str]


def _key(resource: ResourceKey) -> str:
    return resource.value if isinstance(resource, Resource) else str(resource)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    fetched_at: float
    params_fingerprint: str


@dataclass
class RequestWindow:
    window_start: Optional[float] = None
    used: bool = False


@dataclass(frozen=True)
class ThrottleDecision(Generic[T]):
    action: ThrottleAction
    entry: Optional[CacheEntry[T]] = None


@dataclass(frozen=True)
class ThrottleOutcome(Generic[T]):
    """Result of ThrottleGate.run; fetched is True only for the caller that hit upstream."""
    action: ThrottleAction
    value: Optional[T]
    fetched: bool
    entry: Optional[CacheEntry[T]] = None


class ThrottleGate:
    """
    Owns one CacheEntry and one RequestWindow per resource.

    Args:
        clock: Monotonic time source in seconds (injectable for tests).
        coalesce_inflight: Callers refused a fetch while one is pending for
            the same resource await its result instead of taking stale data.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        coalesce_inflight: bool = True,
    ) -> None:
        self._clock = clock
        self._coalesce = coalesce_inflight
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._windows: dict[str, RequestWindow] = {}
        self._inflight: dict[str, asyncio.Future[Any]] = {}

    def entry(self, resource: ResourceKey) -> Optional[CacheEntry[Any]]:
        return self._entries.get(_key(resource))

    def window(self, resource: ResourceKey) -> RequestWindow:
        return self._windows.setdefault(_key(resource), RequestWindow())

    def _roll_window(self, resource: str, now: float, window_s: float) -> RequestWindow:
        window = self.window(resource)
        if window.window_start is None or now - window.window_start > window_s:
            window.window_start = now
            window.used = False
        return window

    def acquire(
        self,
        resource: ResourceKey,
        fingerprint: str,
        ttl_s: float,
        window_s: float,
    ) -> ThrottleDecision[Any]:
        """Decide ServeCached / Fetch / ServeStaleOrEmpty; a Fetch grant spends the window."""
        key = _key(resource)
        now = self._clock()
        window = self._roll_window(key, now, window_s)
        entry = self._entries.get(key)

        if (
            entry is not None
            and entry.params_fingerprint == fingerprint
            and now - entry.fetched_at < ttl_s
        ):
            action = ThrottleAction.SERVE_CACHED
        elif not window.used:
            window.used = True
            action = ThrottleAction.FETCH
            logger.info("throttle_fetch_granted", resource=key, fingerprint=fingerprint)
        else:
            action = ThrottleAction.SERVE_STALE_OR_EMPTY
            logger.debug(
                "throttle_window_spent",
                resource=key,
                fingerprint=fingerprint,
                stale_fingerprint=entry.params_fingerprint if entry else None,
            )

        THROTTLE_DECISIONS.labels(resource=key, action=action.value).inc()
        return ThrottleDecision(action=action, entry=entry)

    def store(self, resource: ResourceKey, value: T, fingerprint: str) -> CacheEntry[T]:
        """Replace the resource's entry after a successful fetch."""
        entry = CacheEntry(value=value, fetched_at=self._clock(), params_fingerprint=fingerprint)
        self._entries[_key(resource)] = entry
        return entry

    async def run(
        self,
        resource: ResourceKey,
        fingerprint: str,
        ttl_s: float,
        window_s: float,
        fetch: Callable[[], Awaitable[T]],
    ) -> ThrottleOutcome[T]:
        """
        Apply the gate and, when granted, perform the fetch and cache its value.

        Upstream failures propagate to the caller that was granted the fetch;
        the window stays spent and the previous entry stays cached.
        """
        key = _key(resource)
        decision = self.acquire(key, fingerprint, ttl_s, window_s)

        cached = decision.entry
        if decision.action is ThrottleAction.SERVE_CACHED and cached is not None:
            return ThrottleOutcome(decision.action, cached.value, False, cached)

        if decision.action is ThrottleAction.FETCH:
            task: asyncio.Future[T] = asyncio.ensure_future(fetch())
            self._inflight[key] = task
            try:
                value = await task
            finally:
                if self._inflight.get(key) is task:
                    del self._inflight[key]
            entry = self.store(key, value, fingerprint)
            return ThrottleOutcome(decision.action, value, True, entry)

        pending = self._inflight.get(key) if self._coalesce else None
        if pending is not None:
            await asyncio.wait({pending})
            if not pending.cancelled() and pending.exception() is None:
                logger.debug("throttle_coalesced", resource=key)
                return ThrottleOutcome(decision.action, pending.result(), False, self.entry(key))

        stale = self.entry(key)
        return ThrottleOutcome(decision.action, stale.value if stale else None, False, stale)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Per-resource cache/window state for diagnostics."""
        now = self._clock()
        out: dict[str, dict[str, Any]] = {}
        for key in sorted(set(self._entries) | set(self._windows)):
            entry = self._entries.get(key)
            window = self._windows.get(key)
            out[key] = {
                "cached": entry is not None,
                "age_s": round(now - entry.fetched_at, 1) if entry else None,
                "fingerprint": entry.params_fingerprint if entry else None,
                "window_used": window.used if window else False,
                "window_age_s": round(now - window.window_start, 1)
                if window and window.window_start is not None
                else None,
                "inflight": key in self._inflight,
            }
        return out
