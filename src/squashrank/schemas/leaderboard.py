# src/squashrank/schemas/leaderboard.py

"""Leaderboard schemas."""

from pydantic import BaseModel, Field

from .player import PlayerSummary


class LeaderboardEntry(BaseModel):
    """Single entry in the leaderboard.

    Attributes:
        rank: Position in leaderboard (1-indexed)
        player: The player, including current rating and deviation
    """

    rank: int = Field(..., ge=1, description="Position in leaderboard (1-indexed)")
    player: PlayerSummary
