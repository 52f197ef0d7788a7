# src/squashrank/api/match.py

"""API endpoints for reporting and resolving matches."""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from squashrank.api.deps import get_current_player
from squashrank.db.models import Match, MatchStatus, Player
from squashrank.db.session import get_db
from squashrank.exceptions import MatchNotFoundError
from squashrank.schemas.common import RatingInfo
from squashrank.schemas.match import (
    MatchConfirmationRead,
    MatchCreate,
    MatchRead,
    MatchRejectionRead,
    RatingUpdate,
)
from squashrank.schemas.pagination import PaginatedResponse
from squashrank.services import match_service, notifications, player_service
from squashrank.services.match_service import RatingChange
from squashrank.services.notifications import Notifier, get_notifier

router = APIRouter(prefix="/matches", tags=["Matches"])


def _rating_update(change: RatingChange) -> RatingUpdate:
    return RatingUpdate(
        player_id=change.player.id,
        before=RatingInfo.from_state(change.before),
        after=RatingInfo.from_state(change.after),
        rating_change=change.rating_delta,
    )


@router.post("", response_model=MatchRead, status_code=status.HTTP_201_CREATED)
async def report_match(
    match_in: MatchCreate,
    background_tasks: BackgroundTasks,
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> Match:
    """
    Report a score against an opponent. The match stays pending until the
    opponent confirms it; the opponent is notified.

    Raises:
        404: If the opponent is not registered
        422: If the score is malformed or the opponent is the caller
    """
    reporter_score, opponent_score = match_in.resolve_scores()
    opponent = await player_service.get_player_by_telegram_id(
        db, match_in.opponent_telegram_id
    )
    created = await match_service.create_pending_match(
        db, me.id, opponent.id, reporter_score, opponent_score
    )
    background_tasks.add_task(notifications.notify_match_reported, notifier, created)
    return created


@router.get("", response_model=PaginatedResponse[MatchRead])
async def read_my_matches(
    match_status: MatchStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[MatchRead]:
    """Matches the caller reported or was reported against, newest first."""
    items, total = await match_service.list_player_matches(
        db, me.id, status=match_status, skip=skip, limit=limit
    )
    return PaginatedResponse[MatchRead].build(
        [MatchRead.model_validate(m) for m in items], total, skip, limit
    )


@router.get("/pending", response_model=list[MatchRead])
async def read_pending_matches(
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
) -> list[Match]:
    """Pending matches waiting for the caller's confirmation."""
    return await match_service.list_pending_for_opponent(db, me.id)


@router.get("/{match_id}", response_model=MatchRead)
async def read_match(
    match_id: int,
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
) -> Match:
    """Retrieve one of the caller's matches. Other players' matches are hidden."""
    match = await match_service.get_match(db, match_id)
    if me.id not in (match.reporter_id, match.opponent_id):
        raise MatchNotFoundError(match_id)
    return match


@router.post("/{match_id}/confirm", response_model=MatchConfirmationRead)
async def confirm_match(
    match_id: int,
    background_tasks: BackgroundTasks,
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> MatchConfirmationRead:
    """
    Confirm a pending match as its opponent and update both ratings.

    Raises:
        403: If the caller is not the match's opponent
        404: If the match doesn't exist
        409: If the match was already confirmed or rejected
    """
    confirmation = await match_service.confirm_match(db, match_id, me.id)
    background_tasks.add_task(
        notifications.notify_match_confirmed, notifier, confirmation
    )
    return MatchConfirmationRead(
        match=MatchRead.model_validate(confirmation.match),
        reporter=_rating_update(confirmation.reporter),
        opponent=_rating_update(confirmation.opponent),
    )


@router.post("/{match_id}/reject", response_model=MatchRejectionRead)
async def reject_match(
    match_id: int,
    background_tasks: BackgroundTasks,
    me: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> MatchRejectionRead:
    """
    Reject a pending match as its opponent. Ratings are not changed.

    Raises:
        403: If the caller is not the match's opponent
        404: If the match doesn't exist
        409: If the match was already confirmed or rejected
    """
    rejection = await match_service.reject_match(db, match_id, me.id)
    background_tasks.add_task(notifications.notify_match_rejected, notifier, rejection)
    return MatchRejectionRead(match=MatchRead.model_validate(rejection.match))
