"""
Odds REST endpoint.

GET /api/odds?live=true&bookmaker=draftkings — totals line per game for one bookmaker.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from shared.models.domain import OddsRow
from shared.utils.logging import get_logger

from api.assembler import ResponseAssembler
from api.dependencies import get_assembler

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["odds"])


@router.get("/odds", response_model=list[OddsRow])
async def get_odds(
    live: str = Query("true", description="Anything other than 'false' means live"),
    bookmaker: Optional[str] = Query(None, description="Bookmaker key, e.g. draftkings"),
    assembler: ResponseAssembler = Depends(get_assembler),
) -> list[OddsRow]:
    """
    Totals market rows. Served from cache inside the TTL; at most one
    upstream call per throttle window, otherwise the last fetched rows.
    """
    return await assembler.get_odds(live=live.lower() != "false", bookmaker=bookmaker or None)
