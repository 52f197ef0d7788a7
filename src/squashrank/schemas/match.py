# src/squashrank/schemas/match.py

"""Pydantic schemas for the Match resource."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from squashrank.exceptions import InvalidScoreError
from squashrank.rating.outcome import parse_score

from .common import RatingInfo
from .player import PlayerSummary

# ===============================================
# == Create Schema
# ===============================================


class MatchCreate(BaseModel):
    """
    Payload for reporting a score against an opponent.

    The score is given either as a ``"3:1"`` string (the first number is the
    reporter's) or as two explicit integers.

    Examples:
        {"opponent_telegram_id": 42, "score": "3:1"}
        {"opponent_telegram_id": 42, "reporter_score": 3, "opponent_score": 1}
    """

    opponent_telegram_id: int
    score: str | None = Field(default=None, description="Score like '3:1'")
    reporter_score: StrictInt | None = None
    opponent_score: StrictInt | None = None

    def resolve_scores(self) -> tuple[int, int]:
        """Returns ``(reporter_score, opponent_score)`` from the one form sent."""
        if self.score is not None:
            if self.reporter_score is not None or self.opponent_score is not None:
                raise InvalidScoreError("send either 'score' or the game counts")
            return parse_score(self.score)
        if self.reporter_score is None or self.opponent_score is None:
            raise InvalidScoreError("either 'score' or both game counts are required")
        return self.reporter_score, self.opponent_score


# ===============================================
# == Read Schemas
# ===============================================


class MatchRead(BaseModel):
    """Properties to return to the client for a match."""

    id: int
    reporter: PlayerSummary
    opponent: PlayerSummary
    reporter_score: int
    opponent_score: int
    status: Literal["pending", "confirmed", "rejected"]
    created_at: datetime
    updated_at: datetime | None = None
    resolved_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class RatingUpdate(BaseModel):
    """One player's rating before and after a confirmed match."""

    player_id: int
    before: RatingInfo
    after: RatingInfo
    rating_change: float


class MatchConfirmationRead(BaseModel):
    """Response for a successful confirmation."""

    match: MatchRead
    reporter: RatingUpdate
    opponent: RatingUpdate


class MatchRejectionRead(BaseModel):
    """Response for a successful rejection."""

    match: MatchRead
