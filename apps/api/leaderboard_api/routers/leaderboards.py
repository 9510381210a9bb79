"""GET-only query endpoints for registered leaderboards."""

from __future__ import annotations

from typing import Any, Optional
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from packages.leaderboard_core.ranking import (
    NOT_FOUND_RANK,
    Entry,
    Leaderboard,
    LeaderboardRegistry,
)

logger = logging.getLogger("leaderboard_api.leaderboards")

router = APIRouter(tags=["leaderboards"])


class LeaderboardInfo(BaseModel):
    name: str
    score_field: str
    identity_field: Optional[str] = None
    size: int


class LeaderboardListResponse(BaseModel):
    leaderboards: list[LeaderboardInfo]


class RankResponse(BaseModel):
    rank: int


class SizeResponse(BaseModel):
    size: int


def get_registry(request: Request) -> LeaderboardRegistry:
    return request.app.state.registry


def _board(name: str, registry: LeaderboardRegistry) -> Leaderboard:
    board = registry.get(name)
    if board is None:
        logger.warning("[API] Unknown leaderboard requested: '%s'", name)
        raise HTTPException(status_code=404, detail=f"Leaderboard not found: {name}")
    return board


def _parse_limit(raw: Optional[str], default: int) -> int:
    try:
        limit = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return limit if limit > 0 else default


def _lookup_param(request: Request) -> tuple[str, str]:
    items = request.query_params.multi_items()
    if not items:
        raise HTTPException(status_code=400, detail="Missing query parameter")
    return items[0]


def _candidate_values(raw: str) -> list[Any]:
    """Query strings carry text; also try the numeric reading so ?id=7 finds id == 7."""
    candidates: list[Any] = [raw]
    try:
        candidates.append(int(raw))
        return candidates
    except ValueError:
        pass
    try:
        number = float(raw)
    except ValueError:
        return candidates
    if math.isfinite(number):
        candidates.append(number)
    return candidates


def _entry_payload(entry: Entry) -> dict[str, Any]:
    return entry.to_dict()


@router.get("/leaderboards", response_model=LeaderboardListResponse)
def list_leaderboards(registry: LeaderboardRegistry = Depends(get_registry)) -> dict[str, Any]:
    return {"leaderboards": [board.describe() for board in registry.all()]}


@router.get("/{name}/top")
def top_entries(
    name: str,
    request: Request,
    limit: Optional[str] = Query(default=None),
    registry: LeaderboardRegistry = Depends(get_registry),
) -> list[dict[str, Any]]:
    board = _board(name, registry)
    parsed = _parse_limit(limit, request.app.state.settings.default_limit)
    logger.debug("[API] top: board='%s', limit=%d", name, parsed)
    return [_entry_payload(e) for e in board.top(parsed)]


@router.get("/{name}/entry")
def find_entry(
    name: str,
    request: Request,
    registry: LeaderboardRegistry = Depends(get_registry),
) -> dict[str, Any]:
    board = _board(name, registry)
    field, raw = _lookup_param(request)
    for value in _candidate_values(raw):
        entry = board.find_by(field, value)
        if entry is not None:
            return _entry_payload(entry)
    raise HTTPException(status_code=404, detail="Entry not found")


@router.get("/{name}/rank", response_model=RankResponse)
def entry_rank(
    name: str,
    request: Request,
    registry: LeaderboardRegistry = Depends(get_registry),
) -> dict[str, int]:
    board = _board(name, registry)
    field, raw = _lookup_param(request)
    for value in _candidate_values(raw):
        rank = board.rank_of(field, value)
        if rank != NOT_FOUND_RANK:
            return {"rank": rank}
    raise HTTPException(status_code=404, detail="Entry not found")


@router.get("/{name}/size", response_model=SizeResponse)
def leaderboard_size(
    name: str,
    registry: LeaderboardRegistry = Depends(get_registry),
) -> dict[str, int]:
    board = _board(name, registry)
    return {"size": board.size()}
