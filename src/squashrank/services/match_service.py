# src/squashrank/services/match_service.py

"""Business logic for the match lifecycle.

A match starts ``pending`` when the reporter submits a score. Only the
opponent can move it on: ``confirm`` applies the Glicko-2 update to both
players exactly once, ``reject`` closes it without touching ratings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from squashrank import config
from squashrank.db import models
from squashrank.db.models import MatchStatus
from squashrank.exceptions import (
    MatchAlreadyResolvedError,
    MatchNotFoundError,
    NotMatchOpponentError,
    PlayerNotFoundError,
    SelfMatchError,
)
from squashrank.rating import glicko2_engine
from squashrank.rating.glicko2_engine import Glicko2Rating
from squashrank.rating.outcome import score_to_outcome, validate_game_score
from squashrank.services.locks import player_locks

logger = logging.getLogger(__name__)


# ===============================================
# == Results handed to notifiers
# ===============================================


@dataclass(frozen=True)
class RatingChange:
    """A player's rating state on either side of a confirmed match."""

    player: models.Player
    before: Glicko2Rating
    after: Glicko2Rating

    @property
    def rating_delta(self) -> float:
        return self.after.rating - self.before.rating


@dataclass(frozen=True)
class MatchConfirmation:
    match: models.Match
    reporter: RatingChange
    opponent: RatingChange


@dataclass(frozen=True)
class MatchRejection:
    match: models.Match
    reporter: models.Player
    opponent: models.Player


# ===============================================
# == Queries
# ===============================================


def _with_players(query):
    return query.options(
        selectinload(models.Match.reporter), selectinload(models.Match.opponent)
    ).execution_options(populate_existing=True)


async def get_match(db: AsyncSession, match_id: int) -> models.Match:
    """Load a match together with both players.

    Raises:
        MatchNotFoundError: If no match has this ID.
    """
    query = _with_players(select(models.Match).where(models.Match.id == match_id))
    result = await db.execute(query)
    match = result.scalar_one_or_none()
    if match is None:
        raise MatchNotFoundError(match_id)
    return match


async def find_latest_pending_between(
    db: AsyncSession, reporter_id: int, opponent_id: int
) -> models.Match | None:
    """The newest pending match reported by ``reporter_id`` against ``opponent_id``.

    Several pending matches between the same pair may coexist; only the most
    recent one is returned.
    """
    return await models.Match.find_latest_pending_between(db, reporter_id, opponent_id)


async def list_pending_for_opponent(
    db: AsyncSession, player_id: int
) -> list[models.Match]:
    """Pending matches waiting for ``player_id`` to confirm or reject."""
    query = _with_players(
        select(models.Match)
        .where(
            models.Match.opponent_id == player_id,
            models.Match.status == MatchStatus.PENDING.value,
        )
        .order_by(models.Match.id.desc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_player_matches(
    db: AsyncSession,
    player_id: int,
    status: MatchStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[models.Match], int]:
    """Matches a player took part in on either side, newest first."""
    base_query = select(models.Match).where(
        or_(
            models.Match.reporter_id == player_id,
            models.Match.opponent_id == player_id,
        )
    )
    if status is not None:
        base_query = base_query.where(models.Match.status == status.value)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    query = _with_players(
        base_query.order_by(models.Match.id.desc()).offset(skip).limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


# ===============================================
# == Lifecycle operations
# ===============================================


async def create_pending_match(
    db: AsyncSession,
    reporter_id: int,
    opponent_id: int,
    reporter_score: int,
    opponent_score: int,
) -> models.Match:
    """
    Records a reported score as a new pending match.

    No check is made for other pending matches between the same players.

    Raises:
        InvalidScoreError: If a score is not a non-negative integer
        SelfMatchError: If reporter and opponent are the same player
        PlayerNotFoundError: If either player does not exist
    """
    validate_game_score(reporter_score)
    validate_game_score(opponent_score)
    if reporter_id == opponent_id:
        raise SelfMatchError(reporter_id)

    logger.info(
        "Reporting match",
        extra={
            "reporter_id": reporter_id,
            "opponent_id": opponent_id,
            "score": f"{reporter_score}:{opponent_score}",
        },
    )

    try:
        for player_id in (reporter_id, opponent_id):
            if await db.get(models.Player, player_id) is None:
                raise PlayerNotFoundError(player_id)

        new_match = models.Match(
            reporter_id=reporter_id,
            opponent_id=opponent_id,
            reporter_score=reporter_score,
            opponent_score=opponent_score,
            status=MatchStatus.PENDING.value,
        )
        db.add(new_match)
        await db.commit()
        logger.info("Match pending confirmation", extra={"match_id": new_match.id})

    except Exception as e:
        logger.error(
            "Failed to create match",
            extra={"reporter_id": reporter_id, "error": str(e)},
            exc_info=True,
        )
        await db.rollback()
        raise

    return await get_match(db, new_match.id)


def _check_resolvable(match: models.Match, acting_player_id: int) -> None:
    if not match.is_pending:
        raise MatchAlreadyResolvedError(match.id, match.status)
    if acting_player_id != match.opponent_id:
        raise NotMatchOpponentError(match.id, acting_player_id)


async def _load_for_resolution(db: AsyncSession, match_id: int) -> models.Match:
    match = await db.get(models.Match, match_id, populate_existing=True)
    if match is None:
        raise MatchNotFoundError(match_id)
    return match


async def confirm_match(
    db: AsyncSession,
    match_id: int,
    acting_player_id: int,
    tau: float | None = None,
) -> MatchConfirmation:
    """
    Confirms a pending match and applies the rating update to both players.

    The status change, the read of both players' current ratings and the
    write of their new ratings form one transaction. Concurrent confirmations
    of the same match are serialized so only one of them updates ratings.

    Raises:
        MatchNotFoundError: If the match doesn't exist
        MatchAlreadyResolvedError: If the match is not pending
        NotMatchOpponentError: If the acting player is not the opponent
        RatingCalculationError: If the rating engine fails; nothing is written
    """
    match = await _load_for_resolution(db, match_id)
    tau = config.GLICKO2_TAU if tau is None else tau

    async with player_locks.hold(match.reporter_id, match.opponent_id):
        try:
            # Re-read under the lock: another confirmation may have finished
            await db.refresh(match)
            _check_resolvable(match, acting_player_id)

            if not await models.Match.claim(db, match.id, MatchStatus.CONFIRMED):
                await db.refresh(match)
                raise MatchAlreadyResolvedError(match.id, match.status)

            players = await models.Player.lock_many(
                db, [match.reporter_id, match.opponent_id]
            )
            reporter = players[match.reporter_id]
            opponent = players[match.opponent_id]

            reporter_before = reporter.rating_state
            opponent_before = opponent.rating_state
            outcome = score_to_outcome(match.reporter_score, match.opponent_score)
            reporter_after, opponent_after = glicko2_engine.rate_match(
                reporter_before, opponent_before, outcome, tau
            )

            reporter.apply_rating(reporter_after)
            opponent.apply_rating(opponent_after)
            await db.commit()

        except (MatchAlreadyResolvedError, NotMatchOpponentError) as e:
            await db.rollback()
            logger.info(
                "Match confirmation refused: %s",
                e.message,
                extra={"match_id": match_id, "acting_player_id": acting_player_id},
            )
            raise

        except Exception as e:
            logger.error(
                "Failed to confirm match",
                extra={"match_id": match_id, "error": str(e)},
                exc_info=True,
            )
            await db.rollback()
            raise

    logger.info(
        "Match confirmed",
        extra={
            "match_id": match_id,
            "outcome": outcome,
            "reporter_rating": round(reporter_after.rating, 2),
            "opponent_rating": round(opponent_after.rating, 2),
        },
    )
    return MatchConfirmation(
        match=await get_match(db, match_id),
        reporter=RatingChange(reporter, reporter_before, reporter_after),
        opponent=RatingChange(opponent, opponent_before, opponent_after),
    )


async def reject_match(
    db: AsyncSession, match_id: int, acting_player_id: int
) -> MatchRejection:
    """
    Rejects a pending match. Ratings are left untouched.

    Raises:
        MatchNotFoundError: If the match doesn't exist
        MatchAlreadyResolvedError: If the match is not pending
        NotMatchOpponentError: If the acting player is not the opponent
    """
    match = await _load_for_resolution(db, match_id)

    async with player_locks.hold(match.reporter_id, match.opponent_id):
        try:
            await db.refresh(match)
            _check_resolvable(match, acting_player_id)

            if not await models.Match.claim(db, match.id, MatchStatus.REJECTED):
                await db.refresh(match)
                raise MatchAlreadyResolvedError(match.id, match.status)
            await db.commit()

        except (MatchAlreadyResolvedError, NotMatchOpponentError) as e:
            await db.rollback()
            logger.info(
                "Match rejection refused: %s",
                e.message,
                extra={"match_id": match_id, "acting_player_id": acting_player_id},
            )
            raise

        except Exception as e:
            logger.error(
                "Failed to reject match",
                extra={"match_id": match_id, "error": str(e)},
                exc_info=True,
            )
            await db.rollback()
            raise

    logger.info("Match rejected", extra={"match_id": match_id})
    rejected = await get_match(db, match_id)
    return MatchRejection(
        match=rejected, reporter=rejected.reporter, opponent=rejected.opponent
    )
