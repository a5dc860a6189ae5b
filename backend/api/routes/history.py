"""
History REST endpoint.

GET /api/history — intraday market-total series per game, current local day only.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from shared.models.domain import HistoryPoint

from api.assembler import ResponseAssembler
from api.dependencies import get_assembler

router = APIRouter(prefix="/api", tags=["history"])


@router.get("/history", response_model=dict[str, list[HistoryPoint]])
async def get_history(
    assembler: ResponseAssembler = Depends(get_assembler),
) -> dict[str, list[HistoryPoint]]:
    """Games with no point today are omitted."""
    return assembler.get_history()
