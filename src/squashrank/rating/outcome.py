# src/squashrank/rating/outcome.py

"""Conversion of reported squash scores into Glicko-2 outcomes."""

import re

from squashrank import config
from squashrank.exceptions import InvalidScoreError

# "3:1", "3-1", "3 : 1"; the first number is the reporter's.
_SCORE_PATTERN = re.compile(r"^(\d{1,9})\s*[:\-]\s*(\d{1,9})$")


def score_to_outcome(score_a: int, score_b: int) -> float:
    """Returns the outcome for side A: 1 for a win, 0 for a loss, 0.5 for a draw."""
    if score_a > score_b:
        return 1.0
    if score_a < score_b:
        return 0.0
    return 0.5


def parse_score(text: str) -> tuple[int, int]:
    """Parses a ``"3:1"`` style score into ``(reporter_score, opponent_score)``."""
    match = _SCORE_PATTERN.match(str(text).strip())
    if not match:
        raise InvalidScoreError("expected the format '3:1'", score=text)
    return (
        validate_game_score(int(match.group(1))),
        validate_game_score(int(match.group(2))),
    )


def validate_game_score(value: object) -> int:
    """Checks that a single score component is an integer in ``0..MAX_GAMES``."""
    # bool is an int subclass but never a valid game count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScoreError("score must be an integer", score=value)
    if value < 0:
        raise InvalidScoreError("score must not be negative", score=value)
    if value > config.MAX_GAMES:
        raise InvalidScoreError(
            f"score must not exceed {config.MAX_GAMES} games", score=value
        )
    return value
