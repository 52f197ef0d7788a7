# src/squashrank/exceptions.py

"""Custom exception hierarchy for SquashRank.

This module provides a structured exception hierarchy that enables:
1. Proper HTTP status code mapping in API endpoints
2. Detailed error context for logging and debugging
3. Clear distinction between different error categories
"""

from __future__ import annotations


class SquashRankError(Exception):
    """Base exception for all SquashRank errors.

    Attributes:
        message: Human-readable error description
        details: Optional dict with additional context for logging/debugging
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Resource Not Found Errors (HTTP 404)
# =============================================================================


class ResourceNotFoundError(SquashRankError):
    """Base class for resource not found errors."""

    pass


class PlayerNotFoundError(ResourceNotFoundError):
    """Raised when a player ID does not exist."""

    def __init__(self, player_id: int) -> None:
        super().__init__(
            message=f"Player with ID {player_id} not found",
            details={"player_id": player_id},
        )


class MatchNotFoundError(ResourceNotFoundError):
    """Raised when a match ID does not exist."""

    def __init__(self, match_id: int) -> None:
        super().__init__(
            message=f"Match with ID {match_id} not found",
            details={"match_id": match_id},
        )


# =============================================================================
# Authentication / Authorization Errors (HTTP 401 / 403)
# =============================================================================


class AuthenticationError(SquashRankError):
    """Raised when the caller's identity cannot be established."""

    pass


class InvalidInitDataError(AuthenticationError):
    """Raised when Telegram Web App init data is missing, stale or forged."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Invalid init data: {reason}",
            details={"reason": reason},
        )


class PermissionDeniedError(SquashRankError):
    """Base class for actions the caller is not allowed to perform."""

    pass


class NotMatchOpponentError(PermissionDeniedError):
    """Raised when someone other than the opponent tries to resolve a match."""

    def __init__(self, match_id: int, player_id: int) -> None:
        super().__init__(
            message=f"Only the opponent can resolve match {match_id}",
            details={"match_id": match_id, "player_id": player_id},
        )


# =============================================================================
# State Conflict Errors (HTTP 409)
# =============================================================================


class ConflictError(SquashRankError):
    """Base class for requests that conflict with the current state."""

    pass


class MatchAlreadyResolvedError(ConflictError):
    """Raised when a match is no longer pending.

    Confirming or rejecting a resolved match is a no-op; this error reports
    the refused transition rather than a failure.
    """

    def __init__(self, match_id: int, status: str) -> None:
        super().__init__(
            message=f"Match {match_id} is already {status}",
            details={"match_id": match_id, "status": status},
        )
        self.status = status


class TierAlreadySelectedError(ConflictError):
    """Raised when a player tries to pick an initial tier a second time."""

    def __init__(self, player_id: int) -> None:
        super().__init__(
            message=f"Player {player_id} has already selected an initial tier",
            details={"player_id": player_id},
        )


# =============================================================================
# Validation Errors (HTTP 422)
# =============================================================================


class ValidationError(SquashRankError):
    """Base class for validation errors."""

    pass


class InvalidScoreError(ValidationError):
    """Raised when a reported score is malformed or negative."""

    def __init__(self, reason: str, score: object = None) -> None:
        super().__init__(
            message=f"Invalid score: {reason}",
            details={"reason": reason, "score": repr(score)},
        )


class SelfMatchError(ValidationError):
    """Raised when a player reports a match against themselves."""

    def __init__(self, player_id: int) -> None:
        super().__init__(
            message="A match requires two different players",
            details={"player_id": player_id},
        )


class UnknownTierError(ValidationError):
    """Raised when an initial tier name is not recognised."""

    def __init__(self, tier: str) -> None:
        super().__init__(
            message=f"Unknown tier '{tier}'",
            details={"tier": tier},
        )


# =============================================================================
# Rating Engine Errors (HTTP 500)
# =============================================================================


class RatingEngineError(SquashRankError):
    """Base class for rating calculation errors."""

    pass


class RatingCalculationError(RatingEngineError):
    """Raised when the Glicko-2 solver cannot produce a valid result."""

    def __init__(self, message: str, player_id: int | None = None) -> None:
        details = {"player_id": player_id} if player_id is not None else {}
        super().__init__(message=message, details=details)
