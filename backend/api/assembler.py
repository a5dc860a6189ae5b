"""
Response assembler.

Orchestrates throttle → adapter → normalizer/merger → history → cache for
each inbound query. All mutable cache state lives in one CacheContext owned
by the assembler; nothing is module-global.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from shared.config import Settings, get_settings
from shared.errors import UpstreamError
from shared.models.domain import HistoryPoint, NormalizedGame, OddsRow
from shared.models.enums import ProviderName, Resource
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from shared.utils.throttle import ThrottleGate

from ingest.history import HistoryRecorder, local_day_bounds, to_epoch_ms
from ingest.normalization.merger import ClockMap, build_clock_map, merge
from ingest.normalization.normalizer import is_before_tip, normalize_game
from ingest.providers.espn import ESPNProvider
from ingest.providers.odds_api import OddsAPIProvider, extract_totals_row

logger = get_logger(__name__)

DEBUG_SAMPLE_GAMES = 3
DEBUG_SAMPLE_SCORES = 4


def odds_fingerprint(live: bool, bookmaker: str) -> str:
    return f"live={str(live).lower()}&bookmaker={bookmaker}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheContext:
    """Process-wide cache state, passed by reference to each component."""
    gate: ThrottleGate
    history: HistoryRecorder
    last_raw_scores: Optional[list[dict[str, Any]]] = None
    last_raw_scores_at: Optional[datetime] = None


class ResponseAssembler:
    """Serves /api/odds, /api/scores and /api/history payloads."""

    def __init__(
        self,
        odds_provider: OddsAPIProvider,
        clock_provider: ESPNProvider,
        settings: Optional[Settings] = None,
        context: Optional[CacheContext] = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings or get_settings()
        self._odds = odds_provider
        self._espn = clock_provider
        self._now = now
        self.context = context or CacheContext(
            gate=ThrottleGate(coalesce_inflight=self._settings.coalesce_inflight),
            history=HistoryRecorder(self._settings.history_capacity),
        )

    async def start(self) -> None:
        await self._odds.start()
        await self._espn.start()

    async def close(self) -> None:
        await self._odds.close()
        await self._espn.close()

    # ── Odds ────────────────────────────────────────────────────────────

    async def get_odds(self, live: bool = True, bookmaker: Optional[str] = None) -> list[OddsRow]:
        """
        Totals rows for one bookmaker. History is appended only when this
        call actually hit upstream, never for cache-served responses.
        """
        bookmaker = bookmaker or self._settings.default_bookmaker

        async def _fetch() -> list[OddsRow]:
            games = await self._odds.fetch_odds(bookmaker)
            return [extract_totals_row(g, bookmaker) for g in games]

        outcome = await self.context.gate.run(
            Resource.ODDS,
            odds_fingerprint(live, bookmaker),
            self._settings.cache_ttl_s,
            self._settings.window_s,
            _fetch,
        )
        rows: list[OddsRow] = outcome.value or []
        if outcome.fetched:
            self.context.history.record_totals(rows, to_epoch_ms(self._now()))
        return rows

    # ── Scores ──────────────────────────────────────────────────────────

    async def get_clock_map(self) -> ClockMap:
        """Secondary clock data; any upstream or decode failure means no data."""

        async def _fetch() -> ClockMap:
            return build_clock_map(await self._espn.fetch_scoreboard())

        try:
            outcome = await self.context.gate.run(
                Resource.CLOCK,
                "",
                self._settings.clock_cache_ttl_s,
                self._settings.clock_window_s,
                _fetch,
            )
        except UpstreamError as exc:
            logger.warning(
                "clock_map_unavailable",
                provider=exc.provider,
                status=exc.status,
                detail=exc.detail,
            )
            return ClockMap()
        return outcome.value if outcome.value is not None else ClockMap()

    async def get_scores(self) -> list[NormalizedGame]:

        async def _fetch() -> list[NormalizedGame]:
            raw_games = await self._odds.fetch_scores()
            self.context.last_raw_scores = raw_games
            self.context.last_raw_scores_at = self._now()
            clock_map = await self.get_clock_map()
            now = self._now()
            games: list[NormalizedGame] = []
            for raw in raw_games:
                game = normalize_game(raw, now)
                if not is_before_tip(raw.get("commence_time"), now):
                    game = merge(game, clock_map)
                games.append(game)
            return games

        outcome = await self.context.gate.run(
            Resource.SCORES,
            "",
            self._settings.cache_ttl_s,
            self._settings.window_s,
            _fetch,
        )
        return outcome.value or []

    # ── History ─────────────────────────────────────────────────────────

    def get_history(self, now: Optional[datetime] = None) -> dict[str, list[HistoryPoint]]:
        day_start, day_end = local_day_bounds(now or self._now())
        return self.context.history.query(day_start, day_end)

    # ── Diagnostics ─────────────────────────────────────────────────────

    def get_scores_debug(self) -> dict[str, Any]:
        """Compact view of the last raw scores payload; never calls upstream."""
        raw = self.context.last_raw_scores
        if raw is None:
            return {"ok": False, "note": "no scores payload fetched yet"}
        sample = [
            {
                "id": g.get("id"),
                "home_team": g.get("home_team"),
                "away_team": g.get("away_team"),
                "home_score": g.get("home_score"),
                "away_score": g.get("away_score"),
                "time": g.get("time"),
                "completed": g.get("completed"),
                "commence_time": g.get("commence_time"),
                "scores_sample": g["scores"][:DEBUG_SAMPLE_SCORES]
                if isinstance(g.get("scores"), list)
                else None,
            }
            for g in raw[:DEBUG_SAMPLE_GAMES]
        ]
        fetched_at = self.context.last_raw_scores_at
        return {
            "ok": True,
            "count": len(raw),
            "fetched_at": fetched_at.isoformat() if fetched_at else None,
            "sample": sample,
        }

    def status(self) -> dict[str, Any]:
        return {
            "resources": self.context.gate.snapshot(),
            "quota": {
                "odds_api_remaining": self._odds.quota_remaining,
            },
            "history_series": len(self.context.history),
            "settings": {
                "cache_ttl_s": self._settings.cache_ttl_s,
                "window_s": self._settings.window_s,
                "clock_cache_ttl_s": self._settings.clock_cache_ttl_s,
                "clock_window_s": self._settings.clock_window_s,
                "coalesce_inflight": self._settings.coalesce_inflight,
            },
        }


def build_assembler(
    settings: Optional[Settings] = None,
    *,
    odds_transport: Optional[httpx.AsyncBaseTransport] = None,
    clock_transport: Optional[httpx.AsyncBaseTransport] = None,
    now: Callable[[], datetime] = _utcnow,
) -> ResponseAssembler:
    """Wire providers and context from settings. Transports are for tests."""
    settings = settings or get_settings()
    odds_http = ProviderHTTPClient(
        provider_name=ProviderName.ODDS_API.value,
        base_url=settings.odds_base_url,
        api_key=settings.odds_api_key,
        timeout_s=settings.provider_request_timeout_s,
        detail_max_len=settings.upstream_detail_max_len,
        transport=odds_transport,
    )
    espn_http = ProviderHTTPClient(
        provider_name=ProviderName.ESPN.value,
        base_url=settings.espn_base_url,
        timeout_s=settings.provider_request_timeout_s,
        detail_max_len=settings.upstream_detail_max_len,
        transport=clock_transport,
    )
    return ResponseAssembler(
        odds_provider=OddsAPIProvider(odds_http, settings.sport_key, settings.odds_regions),
        clock_provider=ESPNProvider(espn_http, settings.espn_path),
        settings=settings,
        now=now,
    )
