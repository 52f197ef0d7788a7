# src/squashrank/api/deps.py

"""Shared FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from squashrank.auth import get_telegram_user
from squashrank.db.models import Player
from squashrank.db.session import get_db
from squashrank.schemas.player import TelegramUser
from squashrank.services import player_service


async def get_current_player(
    user: TelegramUser = Depends(get_telegram_user),
    db: AsyncSession = Depends(get_db),
) -> Player:
    """The authenticated caller, registered on first contact."""
    return await player_service.get_or_create_player(db, user)
