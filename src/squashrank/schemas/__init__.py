# src/squashrank/schemas/__init__.py

"""Pydantic schemas for API validation and serialization."""

from .common import RatingInfo
from .leaderboard import LeaderboardEntry
from .match import (
    MatchConfirmationRead,
    MatchCreate,
    MatchRead,
    MatchRejectionRead,
    RatingUpdate,
)
from .pagination import PaginatedResponse
from .player import PlayerRead, PlayerSummary, TelegramUser, TierSelection

__all__ = [
    # Common
    "RatingInfo",
    "PaginatedResponse",
    # Leaderboard
    "LeaderboardEntry",
    # Match
    "MatchCreate",
    "MatchRead",
    "MatchConfirmationRead",
    "MatchRejectionRead",
    "RatingUpdate",
    # Player
    "PlayerRead",
    "PlayerSummary",
    "TelegramUser",
    "TierSelection",
]
