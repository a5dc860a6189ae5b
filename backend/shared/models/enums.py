"""Domain enumerations for Linewatch."""
from __future__ import annotations

from enum import Enum


class Resource(str, Enum):
    """Throttled upstream resources; each owns one cache entry and one window."""
    ODDS = "odds"
    SCORES = "scores"
    CLOCK = "clock"


class ThrottleAction(str, Enum):
    SERVE_CACHED = "serve_cached"
    FETCH = "fetch"
    SERVE_STALE_OR_EMPTY = "serve_stale_or_empty"


class ProviderName(str, Enum):
    ODDS_API = "odds_api"
    ESPN = "espn"


class GameState(str, Enum):
    """ESPN-style coarse game state."""
    IN = "in"
    POST = "post"
