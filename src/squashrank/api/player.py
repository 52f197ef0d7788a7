# src/squashrank/api/player.py

"""API endpoints for players, tiers and the leaderboard."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from squashrank.api.deps import get_current_player
from squashrank.db.models import Player
from squashrank.db.session import get_db
from squashrank.schemas.leaderboard import LeaderboardEntry
from squashrank.schemas.pagination import PaginatedResponse
from squashrank.schemas.player import PlayerRead, PlayerSummary, TierSelection
from squashrank.services import player_service

router = APIRouter(tags=["Players"])


@router.get("/me", response_model=PlayerRead)
async def read_me(me: Player = Depends(get_current_player)) -> Player:
    """
    Return the calling player, registering them on first contact.

    A new player has the default rating state and ``initialized=false``
    until they pick an initial tier or play a confirmed match.
    """
    return me


@router.post("/me/tier", response_model=PlayerRead)
async def choose_tier(
    selection: TierSelection,
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
) -> Player:
    """
    Pick the initial skill tier, which sets the starting rating and RD.

    - **tier**: beginner (1200/300), intermediate (1500/200), advanced (1800/100)

    Raises:
        409: If the player already has an initialized rating
        422: If the tier is unknown
    """
    return await player_service.select_initial_tier(db, me.id, selection.tier)


@router.get("/players", response_model=PaginatedResponse[PlayerRead])
async def read_opponents(
    q: str | None = Query(None, description="Search by name or @username"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(10, ge=1, le=100, description="Max records to return"),
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[PlayerRead]:
    """
    List selectable opponents: every player except the caller, highest
    rating first.
    """
    items, total = await player_service.list_opponents(
        db, me.id, query=q, skip=skip, limit=limit
    )
    return PaginatedResponse[PlayerRead].build(
        [PlayerRead.model_validate(p) for p in items], total, skip, limit
    )


@router.get("/leaders", response_model=PaginatedResponse[LeaderboardEntry])
async def read_leaderboard(
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max records to return"),
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[LeaderboardEntry]:
    """Players ranked by rating, highest first."""
    ranked, total = await player_service.get_leaderboard(db, skip=skip, limit=limit)
    entries = [
        LeaderboardEntry(rank=rank, player=PlayerSummary.model_validate(player))
        for rank, player in ranked
    ]
    return PaginatedResponse[LeaderboardEntry].build(entries, total, skip, limit)
