# src/squashrank/schemas/player.py

"""Pydantic schemas for the Player resource."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ===============================================
# Telegram identity, as found in Web App init data
# ===============================================
class TelegramUser(BaseModel):
    """The ``user`` object Telegram embeds in Web App init data."""

    id: int
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    # Telegram adds fields like language_code and photo_url
    model_config = ConfigDict(extra="ignore")


# ===============================================
# Read Schemas
# ===============================================
class PlayerSummary(BaseModel):
    """Compact player view embedded in match responses."""

    id: int
    telegram_id: int
    display_name: str
    rating: float
    rd: float

    model_config = ConfigDict(from_attributes=True)


class PlayerRead(PlayerSummary):
    """Properties to return to the client."""

    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    vol: float
    initialized: bool
    tier: str | None = None
    created_at: datetime


# ===============================================
# Tier selection
# ===============================================
class TierSelection(BaseModel):
    """Initial skill tier picked on first contact."""

    tier: str = Field(
        ..., min_length=1, description="beginner, intermediate or advanced"
    )
