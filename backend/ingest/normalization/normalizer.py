"""
Score/clock normalizer.

Maps one raw scores-feed game into a NormalizedGame. Scores come from an
ordered list of extraction strategies (first non-null value per side wins);
period/clock come from the rule table in ingest.normalization.clock. A game
that has not tipped off yet never shows live-looking fields.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from shared.models.domain import NormalizedGame, opt_str
from shared.utils.logging import get_logger

from ingest.normalization.clock import infer_clock
from ingest.normalization.teams import normalize_team_name

logger = get_logger(__name__)

_DASH_SCORE_RE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


@dataclass(frozen=True)
class ScorePair:
    away: Optional[int] = None
    home: Optional[int] = None

    @property
    def complete(self) -> bool:
        return self.away is not None and self.home is not None


ScoreStrategy = Callable[[dict[str, Any]], Optional[ScorePair]]


def _to_int(value: Any) -> Optional[int]:
    """Integers, integral floats and digit strings; everything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        s = value.strip()
        if s.isdigit():
            return int(s)
    return None


def _sub_scores(raw: dict[str, Any]) -> list[dict[str, Any]]:
    scores = raw.get("scores")
    if not isinstance(scores, list):
        return []
    return [s for s in scores if isinstance(s, dict)]


# ── Strategies ──────────────────────────────────────────────────────────

def explicit_score_fields(raw: dict[str, Any]) -> Optional[ScorePair]:
    """home_score / away_score on the record itself."""
    pair = ScorePair(away=_to_int(raw.get("away_score")), home=_to_int(raw.get("home_score")))
    return pair if pair.away is not None or pair.home is not None else None


def dash_score_string(raw: dict[str, Any]) -> Optional[ScorePair]:
    """A "58-52" style sub-score, away first; the latest entry wins."""
    for entry in reversed(_sub_scores(raw)):
        score = entry.get("score")
        if not isinstance(score, str):
            continue
        m = _DASH_SCORE_RE.match(score)
        if m:
            return ScorePair(away=int(m.group(1)), home=int(m.group(2)))
    return None


def named_team_entries(raw: dict[str, Any]) -> Optional[ScorePair]:
    """
    {name, score} entries matched to home/away by normalized name, exact
    match first, then substring containment for differing naming conventions.
    """
    entries: list[tuple[str, int]] = []
    for e in _sub_scores(raw):
        name = normalize_team_name(e.get("name"))
        score = _to_int(e.get("score"))
        if name and score is not None:
            entries.append((name, score))
    if not entries:
        return None

    targets = {
        "home": normalize_team_name(raw.get("home_team")),
        "away": normalize_team_name(raw.get("away_team")),
    }
    found: dict[str, int] = {}
    used: set[int] = set()
    for containment in (False, True):
        for side, target in targets.items():
            if side in found or not target:
                continue
            for idx, (name, score) in enumerate(entries):
                if idx in used:
                    continue
                hit = name == target or (containment and (name in target or target in name))
                if hit:
                    found[side] = score
                    used.add(idx)
                    break
    if not found:
        return None
    return ScorePair(away=found.get("away"), home=found.get("home"))


SCORE_STRATEGIES: tuple[ScoreStrategy, ...] = (
    explicit_score_fields,
    dash_score_string,
    named_team_entries,
)


def extract_scores(
    raw: dict[str, Any], strategies: Sequence[ScoreStrategy] = SCORE_STRATEGIES
) -> ScorePair:
    """First non-null value per side across the strategies, in order."""
    away: Optional[int] = None
    home: Optional[int] = None
    for strategy in strategies:
        pair = strategy(raw)
        if pair is None:
            continue
        if away is None:
            away = pair.away
        if home is None:
            home = pair.home
        if ScorePair(away, home).complete:
            break
    return ScorePair(away=away, home=home)


# ── Pre-tip guard ───────────────────────────────────────────────────────

def parse_commence_time(value: Any) -> Optional[datetime]:
    """ISO-8601 (with or without trailing Z) to an aware UTC datetime."""
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        logger.debug("commence_time_unparseable", value=value)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_before_tip(commence_time: Any, now: datetime) -> bool:
    start = parse_commence_time(commence_time)
    if start is None:
        return False
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now < start


# ── Entry point ─────────────────────────────────────────────────────────

def normalize_game(raw: dict[str, Any], now: Optional[datetime] = None) -> NormalizedGame:
    """Map one raw scores-feed record into the canonical game shape."""
    now = now or datetime.now(timezone.utc)
    game_id = str(raw.get("id", ""))
    home_team = opt_str(raw.get("home_team"))
    away_team = opt_str(raw.get("away_team"))

    if is_before_tip(raw.get("commence_time"), now):
        return NormalizedGame(id=game_id, home_team=home_team, away_team=away_team, completed=False)

    scores = extract_scores(raw)
    clock = infer_clock(raw)
    return NormalizedGame(
        id=game_id,
        home_team=home_team,
        away_team=away_team,
        home_score=scores.home,
        away_score=scores.away,
        period=clock.period,
        clock=clock.clock,
        completed=bool(raw.get("completed")),
    )
