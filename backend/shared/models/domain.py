"""
Pydantic v2 domain models for Linewatch.
These are the canonical wire/internal representations served to clients.
"""
from __future__ import annotations

from typing import Any, Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict


def opt_str(value: Any) -> Optional[str]:
    """Strings pass through, numbers are stringified, anything else is None."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


# Upstream text fields: malformed values degrade to null instead of failing the row.
OptStr = Annotated[Optional[str], BeforeValidator(opt_str)]


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ── Odds ────────────────────────────────────────────────────────────────
class OddsRow(DomainModel):
    """One game with the selected bookmaker's totals line."""
    id: str
    sport_key: OptStr = None
    commence_time: OptStr = None
    home_team: OptStr = None
    away_team: OptStr = None
    bookmaker: str
    bookmaker_last_update: OptStr = None
    total_point: Optional[float] = None


# ── Scores ──────────────────────────────────────────────────────────────
class ClockState(FrozenModel):
    """Period 1-4 for regulation quarters, 5+ for overtime periods."""
    period: Optional[int] = None
    clock: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.period is not None


class NormalizedGame(FrozenModel):
    id: str
    home_team: OptStr = None
    away_team: OptStr = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    period: Optional[int] = None
    clock: Optional[str] = None
    completed: bool = False


# ── History ─────────────────────────────────────────────────────────────
class HistoryPoint(FrozenModel):
    ts: int  # epoch milliseconds
    y: float
