# src/squashrank/config.py

"""Runtime configuration read from environment variables."""

import os
from typing import NamedTuple


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


# ===============================================
# == Glicko-2 constants
# ===============================================

# The system constant, tau, constrains the change in volatility over time.
GLICKO2_TAU = _env_float("GLICKO2_TAU", 0.5)

# Rating state assigned to a player on first contact.
DEFAULT_RATING = _env_float("DEFAULT_RATING", 1500.0)
DEFAULT_RD = _env_float("DEFAULT_RD", 350.0)
DEFAULT_VOL = _env_float("DEFAULT_VOL", 0.06)

# Upper bound on games one side can report in a single match.
MAX_GAMES = _env_int("MAX_GAMES", 99)


class TierPreset(NamedTuple):
    """Initial rating and deviation for a self-selected skill tier."""

    rating: float
    rd: float


INITIAL_TIERS: dict[str, TierPreset] = {
    "beginner": TierPreset(rating=1200.0, rd=300.0),
    "intermediate": TierPreset(rating=1500.0, rd=200.0),
    "advanced": TierPreset(rating=1800.0, rd=100.0),
}

# Club level names used in the chat bot keyboard.
TIER_ALIASES: dict[str, str] = {
    "c": "intermediate",
    "b": "advanced",
}

# ===============================================
# == Telegram integration
# ===============================================

BOT_TOKEN = os.getenv("BOT_TOKEN")
WEB_APP_URL = os.getenv("WEB_APP_URL")
TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")

# Maximum age of Web App init data in seconds; 0 disables the check.
INIT_DATA_MAX_AGE = _env_int("INIT_DATA_MAX_AGE", 86400)

# ===============================================
# == Misc
# ===============================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
API_PREFIX = "/api"
