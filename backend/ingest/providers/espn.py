"""
ESPN provider adapter.
Fetches the public scoreboard, used as the secondary source of period/clock.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from shared.errors import DecodeError
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScoreboardEvent:
    """Team-name variants and raw status object of one scoreboard event."""
    event_id: str
    home_names: tuple[str, ...]
    away_names: tuple[str, ...]
    status: dict[str, Any]


def _str_field(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    return value.strip() if isinstance(value, str) else ""


def _team_name_variants(team: dict[str, Any]) -> tuple[str, ...]:
    """Display name first, then location + nickname, short name, nickname."""
    location = _str_field(team, "location")
    nickname = _str_field(team, "name")
    candidates = [
        _str_field(team, "displayName"),
        f"{location} {nickname}" if location and nickname else "",
        _str_field(team, "shortDisplayName"),
        nickname,
    ]
    seen: list[str] = []
    for c in candidates:
        if c and c not in seen:
            seen.append(c)
    return tuple(seen)


def parse_scoreboard_event(event: dict[str, Any]) -> Optional[ScoreboardEvent]:
    """
    Extract home/away names and the status object. Returns None when the
    teams are missing or the event is not shaped like a scoreboard entry.
    """
    competitions = event.get("competitions")
    if not isinstance(competitions, list) or not competitions or not isinstance(competitions[0], dict):
        return None
    comp = competitions[0]
    competitors = comp.get("competitors")
    if not isinstance(competitors, list):
        return None
    home: tuple[str, ...] = ()
    away: tuple[str, ...] = ()
    for c in competitors:
        if not isinstance(c, dict) or not isinstance(c.get("team"), dict):
            continue
        names = _team_name_variants(c["team"])
        if c.get("homeAway") == "home":
            home = names
        elif c.get("homeAway") == "away":
            away = names
    if not home or not away:
        return None
    status = comp.get("status") or event.get("status") or {}
    return ScoreboardEvent(
        event_id=str(event.get("id", "")),
        home_names=home,
        away_names=away,
        status=status if isinstance(status, dict) else {},
    )


class ESPNProvider(BaseProvider):
    """Clock Adapter: one scoreboard call per fetch."""

    def __init__(self, http_client: ProviderHTTPClient, sport_league_path: str = "basketball/nba") -> None:
        super().__init__(ProviderName.ESPN, http_client)
        self._path = sport_league_path.strip("/")

    def _auth_params(self) -> dict[str, str]:
        return {}

    async def fetch_scoreboard(self) -> list[ScoreboardEvent]:
        data = await self._get("fetch_scoreboard", f"/{self._path}/scoreboard")
        if not isinstance(data, dict) or not isinstance(data.get("events", []), list):
            raise DecodeError(self._name.value, "scoreboard payload has no events array")
        events: list[ScoreboardEvent] = []
        for raw in data.get("events", []):
            if not isinstance(raw, dict):
                continue
            try:
                parsed = parse_scoreboard_event(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                raise DecodeError(
                    self._name.value, f"malformed scoreboard event {raw.get('id')!r}: {exc}"
                ) from exc
            if parsed is None:
                logger.debug("espn_event_skipped", event_id=raw.get("id"))
                continue
            events.append(parsed)
        return events
