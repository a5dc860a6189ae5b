"""
Scores REST endpoints.

GET /api/scores        — live and upcoming games, normalized and clock-merged.
GET /api/scores_debug  — compact sample of the last raw scores payload (debug only).
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from shared.models.domain import NormalizedGame

from api.assembler import ResponseAssembler
from api.dependencies import get_assembler

router = APIRouter(prefix="/api", tags=["scores"])
debug_router = APIRouter(prefix="/api", tags=["debug"])


@router.get("/scores", response_model=list[NormalizedGame])
async def get_scores(
    assembler: ResponseAssembler = Depends(get_assembler),
) -> list[NormalizedGame]:
    return await assembler.get_scores()


@debug_router.get("/scores_debug")
async def get_scores_debug(
    assembler: ResponseAssembler = Depends(get_assembler),
) -> dict[str, Any]:
    return assembler.get_scores_debug()
