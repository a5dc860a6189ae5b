"""
Unit tests for the cross-provider clock merge: scoreboard parsing, key
construction, status canonicalization and fill-only-nulls merging.
"""
from __future__ import annotations

from typing import Any

from ingest.normalization.clock import FINAL, HALFTIME
from ingest.normalization.merger import (
    ClockMap,
    build_clock_map,
    clock_state_from_status,
    merge,
    team_pair_key,
)
from ingest.providers.espn import parse_scoreboard_event
from shared.models.domain import ClockState, NormalizedGame


def _team(display: str, location: str, name: str, short: str) -> dict[str, str]:
    return {"displayName": display, "location": location, "name": name, "shortDisplayName": short}


def _event(
    event_id: str,
    away: dict[str, str],
    home: dict[str, str],
    status: dict[str, Any],
) -> dict[str, Any]:
    return {
        "id": event_id,
        "competitions": [
            {
                "competitors": [
                    {"homeAway": "home", "team": home},
                    {"homeAway": "away", "team": away},
                ],
                "status": status,
            }
        ],
    }


LAKERS_ESPN = _team("LA Lakers", "LA", "Lakers", "Lakers")
CELTICS_ESPN = _team("Boston Celtics", "Boston", "Celtics", "Celtics")
HEAT_ESPN = _team("Miami Heat", "Miami", "Heat", "Heat")

IN_PROGRESS = {
    "period": 3,
    "displayClock": "4:12",
    "type": {"name": "STATUS_IN_PROGRESS", "state": "in", "detail": "3rd Quarter - 4:12"},
}


def _game(**kwargs: Any) -> NormalizedGame:
    base: dict[str, Any] = {"id": "g1", "home_team": "Boston Celtics", "away_team": "Los Angeles Lakers"}
    base.update(kwargs)
    return NormalizedGame(**base)


# ── Keys ────────────────────────────────────────────────────────────────

def test_team_pair_key_is_away_first() -> None:
    assert team_pair_key("LA Lakers", "Boston Celtics") == "lalakers__bostonceltics"


# ── Scoreboard parsing ──────────────────────────────────────────────────

def test_parse_scoreboard_event_collects_name_variants() -> None:
    event = parse_scoreboard_event(_event("401", LAKERS_ESPN, CELTICS_ESPN, IN_PROGRESS))
    assert event is not None
    assert event.event_id == "401"
    assert event.away_names == ("LA Lakers", "Lakers")
    assert event.home_names == ("Boston Celtics", "Celtics")
    assert event.status["period"] == 3


def test_parse_scoreboard_event_without_teams() -> None:
    assert parse_scoreboard_event({"id": "1", "competitions": [{"competitors": []}]}) is None


# ── Status canonicalization ─────────────────────────────────────────────

class TestClockStateFromStatus:

    def test_in_progress(self) -> None:
        assert clock_state_from_status(IN_PROGRESS) == ClockState(period=3, clock="4:12")

    def test_halftime_is_canonical(self) -> None:
        status = {
            "period": 2,
            "displayClock": "0.0",
            "type": {"name": "STATUS_HALFTIME", "state": "in", "description": "Halftime"},
        }
        assert clock_state_from_status(status) == HALFTIME

    def test_final_is_canonical(self) -> None:
        status = {"period": 4, "displayClock": "0.0", "type": {"name": "STATUS_FINAL", "state": "post"}}
        assert clock_state_from_status(status) == FINAL

    def test_pregame_is_dropped(self) -> None:
        status = {
            "period": 0,
            "displayClock": "0:00",
            "type": {"name": "STATUS_SCHEDULED", "state": "pre", "detail": "Sat, October 18th at 7:30 PM EDT"},
        }
        assert clock_state_from_status(status) is None


# ── ClockMap ────────────────────────────────────────────────────────────

class TestClockMap:

    def test_build_skips_pregame_events(self) -> None:
        scheduled = {"period": 0, "type": {"name": "STATUS_SCHEDULED", "state": "pre"}}
        events = [
            parse_scoreboard_event(_event("1", LAKERS_ESPN, CELTICS_ESPN, IN_PROGRESS)),
            parse_scoreboard_event(_event("2", HEAT_ESPN, CELTICS_ESPN, scheduled)),
        ]
        clock_map = build_clock_map(e for e in events if e is not None)
        assert clock_map.event_count == 1
        assert "lalakers__bostonceltics" in clock_map
        assert "lakers__celtics" in clock_map
        assert "miamiheat__bostonceltics" not in clock_map

    def test_exact_lookup(self) -> None:
        clock_map = ClockMap()
        clock_map.add(["Miami Heat"], ["Boston Celtics"], HALFTIME)
        assert clock_map.lookup("Miami Heat", "Boston Celtics") == HALFTIME
        assert clock_map.lookup("Boston Celtics", "Miami Heat") is None

    def test_nickname_variant_bridges_naming_conventions(self) -> None:
        event = parse_scoreboard_event(_event("1", LAKERS_ESPN, CELTICS_ESPN, IN_PROGRESS))
        assert event is not None
        clock_map = build_clock_map([event])
        assert clock_map.lookup("Los Angeles Lakers", "Boston Celtics") == ClockState(period=3, clock="4:12")

    def test_ambiguous_containment_is_rejected(self) -> None:
        clock_map = ClockMap()
        clock_map.add(["Lakers"], ["Celtics"], HALFTIME)
        clock_map.add(["Lakers"], ["Boston Celtics"], FINAL)
        assert clock_map.lookup("Los Angeles Lakers", "Celtics") is None

    def test_empty_names_are_ignored(self) -> None:
        clock_map = ClockMap()
        clock_map.add([""], ["Boston Celtics"], HALFTIME)
        assert len(clock_map) == 0


# ── merge ───────────────────────────────────────────────────────────────

def _map_with(state: ClockState) -> ClockMap:
    clock_map = ClockMap()
    clock_map.add(["Los Angeles Lakers"], ["Boston Celtics"], state)
    return clock_map


def test_merge_fills_null_period_and_clock() -> None:
    merged = merge(_game(), _map_with(ClockState(period=3, clock="4:12")))
    assert (merged.period, merged.clock) == (3, "4:12")


def test_merge_never_overwrites_local_values() -> None:
    merged = merge(_game(period=2), _map_with(ClockState(period=3, clock="4:12")))
    assert (merged.period, merged.clock) == (2, "4:12")


def test_merge_without_match_returns_game_unchanged() -> None:
    game = _game(away_team="Miami Heat")
    assert merge(game, _map_with(HALFTIME)) is game


def test_merge_with_empty_map() -> None:
    game = _game()
    assert merge(game, ClockMap()) == game
