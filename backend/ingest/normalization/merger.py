"""
Cross-provider merge of period/clock.

The scores feed often carries no usable clock. The secondary scoreboard is
keyed by "<away>__<home>" (normalized team names) and used to fill period and
clock where the primary normalizer left them null. Locally produced values
are never overwritten.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from shared.models.domain import ClockState, NormalizedGame
from shared.models.enums import GameState
from shared.utils.logging import get_logger

from ingest.normalization.clock import canonical_break_state
from ingest.normalization.teams import names_match, normalize_team_name
from ingest.providers.espn import ScoreboardEvent

logger = get_logger(__name__)

KEY_SEPARATOR = "__"


def team_pair_key(away_team: Any, home_team: Any) -> str:
    return f"{normalize_team_name(away_team)}{KEY_SEPARATOR}{normalize_team_name(home_team)}"


@dataclass(frozen=True)
class _ClockEntry:
    away_names: tuple[str, ...]
    home_names: tuple[str, ...]
    state: ClockState


class ClockMap(Mapping[str, ClockState]):
    """
    Team-pair key -> ClockState, plus a containment fallback for naming
    conventions that never produce the same key ("LA Lakers" vs "Los Angeles
    Lakers" resolve through the nickname variant).
    """

    def __init__(self) -> None:
        self._by_key: dict[str, ClockState] = {}
        self._entries: list[_ClockEntry] = []

    def add(self, away_names: Iterable[str], home_names: Iterable[str], state: ClockState) -> None:
        away = tuple(n for n in (normalize_team_name(a) for a in away_names) if n)
        home = tuple(n for n in (normalize_team_name(h) for h in home_names) if n)
        if not away or not home:
            return
        self._entries.append(_ClockEntry(away, home, state))
        for a in away:
            for h in home:
                self._by_key.setdefault(f"{a}{KEY_SEPARATOR}{h}", state)

    def __getitem__(self, key: str) -> ClockState:
        return self._by_key[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_key)

    def __len__(self) -> int:
        return len(self._by_key)

    @property
    def event_count(self) -> int:
        return len(self._entries)

    def lookup(self, away_team: Any, home_team: Any) -> Optional[ClockState]:
        """Exact key first; otherwise a unique containment match on both sides."""
        exact = self._by_key.get(team_pair_key(away_team, home_team))
        if exact is not None:
            return exact
        candidates = [
            e for e in self._entries
            if any(names_match(away_team, a) for a in e.away_names)
            and any(names_match(home_team, h) for h in e.home_names)
        ]
        if len(candidates) == 1:
            return candidates[0].state
        if len(candidates) > 1:
            logger.debug(
                "clock_map_ambiguous_match",
                away=away_team,
                home=home_team,
                candidates=len(candidates),
            )
        return None


def clock_state_from_status(status: dict[str, Any]) -> Optional[ClockState]:
    """
    Canonicalize a scoreboard status object.

    Halftime and final collapse to the same canonical states the primary
    normalizer uses; otherwise period/displayClock are taken as reported.
    Returns None for entries that carry nothing worth merging (pre-game).
    """
    type_ = status.get("type") if isinstance(status.get("type"), dict) else {}
    state = str(type_.get("state") or status.get("state") or "").lower()
    text = " ".join(
        str(v) for v in (
            type_.get("name"),
            type_.get("description"),
            type_.get("detail"),
            type_.get("shortDetail"),
        ) if v
    )

    canonical = canonical_break_state(text, state)
    if canonical is not None:
        return canonical

    period: Optional[int]
    try:
        period = int(status.get("period") or 0) or None
    except (TypeError, ValueError):
        period = None
    clock = status.get("displayClock")
    clock = clock.strip() if isinstance(clock, str) and clock.strip() else None

    reported = ClockState(period=period, clock=clock)
    if state in (GameState.IN.value, GameState.POST.value) or reported.resolved:
        return reported
    return None


def build_clock_map(events: Iterable[ScoreboardEvent]) -> ClockMap:
    clock_map = ClockMap()
    for event in events:
        state = clock_state_from_status(event.status)
        if state is None:
            continue
        clock_map.add(event.away_names, event.home_names, state)
    logger.debug("clock_map_built", events=clock_map.event_count, keys=len(clock_map))
    return clock_map


def merge(game: NormalizedGame, clock_map: ClockMap) -> NormalizedGame:
    """Fill null period/clock from the secondary provider."""
    if game.period is not None and game.clock is not None:
        return game
    state = clock_map.lookup(game.away_team, game.home_team)
    if state is None:
        return game
    updates: dict[str, Any] = {}
    if game.period is None and state.period is not None:
        updates["period"] = state.period
    if game.clock is None and state.clock is not None:
        updates["clock"] = state.clock
    return game.model_copy(update=updates) if updates else game
