"""
Period/clock inference from textual and structured game status.

The heuristics are an ordered table of (pattern, handler) rules; the first
rule whose handler returns a ClockState wins. Order matters: an explicit
"Q3 04:12" beats everything, halftime beats final, and the quarter-count
fallback only runs when no text rule fired.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from shared.models.domain import ClockState
from shared.models.enums import GameState

REGULATION_PERIODS = 4
PERIOD_START_CLOCK = "12:00"
GAME_OVER_CLOCK = "0:00"

HALFTIME = ClockState(period=3, clock=PERIOD_START_CLOCK)
FINAL = ClockState(period=REGULATION_PERIODS, clock=GAME_OVER_CLOCK)

_QUARTER_NAME_RE = re.compile(r"1st|2nd|3rd|4th", re.IGNORECASE)


@dataclass(frozen=True)
class StatusInput:
    """Everything the rules may look at for one game."""
    text: str = ""
    state: Optional[str] = None
    completed: bool = False
    sub_scores: Sequence[Any] = field(default_factory=tuple)


MatchHandler = Callable[[re.Match[str], StatusInput], Optional[ClockState]]
StatusHandler = Callable[[StatusInput], Optional[ClockState]]


@dataclass(frozen=True)
class ClockRule:
    """
    A named heuristic over one StatusInput. Rules built with ``matching``
    only run their handler when the pattern is found in the status text.
    """
    name: str
    check: StatusHandler
    pattern: Optional[re.Pattern[str]] = None

    @classmethod
    def matching(cls, name: str, pattern: re.Pattern[str], handler: MatchHandler) -> "ClockRule":
        def check(status: StatusInput) -> Optional[ClockState]:
            m = pattern.search(status.text)
            return handler(m, status) if m is not None else None

        return cls(name, check, pattern)

    def apply(self, status: StatusInput) -> Optional[ClockState]:
        return self.check(status)


def _explicit(m: re.Match[str], _: StatusInput) -> Optional[ClockState]:
    return ClockState(period=int(m.group(1)), clock=f"{m.group(2)}:{m.group(3)}")


def _halftime(_m: re.Match[str], _s: StatusInput) -> Optional[ClockState]:
    return HALFTIME


_FINAL_RE = re.compile(r"final", re.IGNORECASE)


def _final(status: StatusInput) -> Optional[ClockState]:
    if _FINAL_RE.search(status.text) or (status.state or "").lower() == GameState.POST.value:
        return FINAL
    return None


def _end_of_quarter(m: re.Match[str], _: StatusInput) -> Optional[ClockState]:
    quarter = int(m.group(1) or m.group(2))
    return ClockState(period=min(quarter + 1, REGULATION_PERIODS), clock=PERIOD_START_CLOCK)


def _overtime(m: re.Match[str], _: StatusInput) -> Optional[ClockState]:
    n = int(m.group(1)) if m.group(1) else 1
    return ClockState(period=REGULATION_PERIODS + n, clock=f"{m.group(2)}:{m.group(3)}")


def _quarter_count(status: StatusInput) -> Optional[ClockState]:
    if status.completed:
        return FINAL
    done = 0
    for s in status.sub_scores:
        if not isinstance(s, dict):
            continue
        if _QUARTER_NAME_RE.search(str(s.get("name") or "")) and s.get("score") is not None:
            done += 1
    if done > 0:
        return ClockState(period=min(done + 1, REGULATION_PERIODS), clock=None)
    return None


CLOCK_RULES: tuple[ClockRule, ...] = (
    ClockRule.matching(
        "quarter_short",
        re.compile(r"\bq\s*([1-9])\s+(\d{1,2}):(\d{2})", re.IGNORECASE),
        _explicit,
    ),
    ClockRule.matching(
        "quarter_long",
        re.compile(r"\b([1-9])(?:st|nd|rd|th)\s+quarter\s*-\s*(\d{1,2}):(\d{2})", re.IGNORECASE),
        _explicit,
    ),
    ClockRule.matching("halftime", re.compile(r"half[\s_-]?time", re.IGNORECASE), _halftime),
    ClockRule("final", _final),
    ClockRule.matching(
        "end_of_quarter",
        re.compile(
            r"\bend\s+of\s+(?:the\s+)?(?:q(?:uarter)?\s*([1-4])\b|([1-4])(?:st|nd|rd|th)\s+(?:quarter|qtr))",
            re.IGNORECASE,
        ),
        _end_of_quarter,
    ),
    ClockRule.matching(
        "overtime",
        re.compile(r"(?<![0-9a-z])(\d*)\s*ot\s*-\s*(\d{1,2}):(\d{2})", re.IGNORECASE),
        _overtime,
    ),
    ClockRule("quarter_count", _quarter_count),
)

# Rules the secondary provider's status vocabulary is canonicalized with.
BREAK_RULES: tuple[ClockRule, ...] = tuple(r for r in CLOCK_RULES if r.name in ("halftime", "final"))


def apply_rules(status: StatusInput, rules: Sequence[ClockRule] = CLOCK_RULES) -> ClockState:
    for rule in rules:
        result = rule.apply(status)
        if result is not None:
            return result
    return ClockState()


def parse_clock(
    text: str,
    *,
    state: Optional[str] = None,
    completed: bool = False,
    sub_scores: Sequence[Any] = (),
) -> ClockState:
    """Run the full rule table over a status description."""
    return apply_rules(
        StatusInput(text=text or "", state=state, completed=completed, sub_scores=sub_scores)
    )


def canonical_break_state(text: str, state: Optional[str] = None) -> Optional[ClockState]:
    """Halftime/final canonicalization only; None when neither applies."""
    status = StatusInput(text=text or "", state=state)
    for rule in BREAK_RULES:
        result = rule.apply(status)
        if result is not None:
            return result
    return None


def status_input_from_raw(raw: dict[str, Any]) -> StatusInput:
    """
    Collect the textual status (time / status / status_detail) and the
    structured status object (status.state or status.type.state) of a raw game.
    """
    texts: list[str] = []
    state: Optional[str] = None
    for key in ("time", "status_detail"):
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            texts.append(value.strip())

    status = raw.get("status")
    if isinstance(status, str) and status.strip():
        texts.append(status.strip())
    elif isinstance(status, dict):
        type_ = status.get("type") if isinstance(status.get("type"), dict) else {}
        state = status.get("state") or type_.get("state")
        for key in ("detail", "shortDetail", "description"):
            value = type_.get(key) or status.get(key)
            if isinstance(value, str) and value.strip():
                texts.append(value.strip())

    if state is None and isinstance(raw.get("state"), str):
        state = raw["state"]

    sub_scores = raw.get("scores") if isinstance(raw.get("scores"), list) else ()
    return StatusInput(
        text=" | ".join(texts),
        state=state.lower() if isinstance(state, str) else None,
        completed=bool(raw.get("completed")),
        sub_scores=sub_scores,
    )


def infer_clock(raw: dict[str, Any]) -> ClockState:
    return apply_rules(status_input_from_raw(raw))
