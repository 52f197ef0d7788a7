# src/squashrank/services/player_service.py

"""Business logic for player registration, tiers and rankings."""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from squashrank import config
from squashrank.db import models
from squashrank.exceptions import (
    PlayerNotFoundError,
    TierAlreadySelectedError,
    UnknownTierError,
)
from squashrank.schemas.player import TelegramUser
from squashrank.services.locks import player_locks

logger = logging.getLogger(__name__)


async def get_player(db: AsyncSession, player_id: int) -> models.Player:
    """Fetch a player by primary key or raise PlayerNotFoundError."""
    player = await db.get(models.Player, player_id)
    if player is None:
        raise PlayerNotFoundError(player_id)
    return player


async def get_player_by_telegram_id(
    db: AsyncSession, telegram_id: int
) -> models.Player:
    player = await models.Player.find_by_telegram_id(db, telegram_id)
    if player is None:
        raise PlayerNotFoundError(telegram_id)
    return player


def _sync_profile(player: models.Player, user: TelegramUser) -> bool:
    changed = False
    for field in ("username", "first_name", "last_name"):
        value = getattr(user, field)
        if getattr(player, field) != value:
            setattr(player, field, value)
            changed = True
    return changed


async def get_or_create_player(db: AsyncSession, user: TelegramUser) -> models.Player:
    """
    Retrieves the player for a Telegram user, creating it with the default
    rating state on first contact.

    Profile names are refreshed from the latest Telegram data.
    """
    player = await models.Player.find_by_telegram_id(db, user.id)

    if player is not None:
        if _sync_profile(player, user):
            await db.commit()
        return player

    player = models.Player(
        telegram_id=user.id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
    )
    db.add(player)
    try:
        await db.commit()
    except IntegrityError:
        # Another request registered the same user first
        await db.rollback()
        existing = await models.Player.find_by_telegram_id(db, user.id)
        if existing is None:
            raise
        return existing

    logger.info(
        "Registered new player",
        extra={"player_id": player.id, "telegram_id": user.id},
    )
    return player


def resolve_tier(tier: str) -> tuple[str, config.TierPreset]:
    """Map a tier name (or club level alias) to its canonical name and preset."""
    key = tier.strip().lower()
    key = config.TIER_ALIASES.get(key, key)
    preset = config.INITIAL_TIERS.get(key)
    if preset is None:
        raise UnknownTierError(tier)
    return key, preset


async def select_initial_tier(
    db: AsyncSession, player_id: int, tier: str
) -> models.Player:
    """
    Sets a new player's starting rating and deviation from a tier preset.

    Volatility is left unchanged. Allowed once, before the player is
    initialized.

    Raises:
        UnknownTierError: If the tier name is not recognised
        PlayerNotFoundError: If the player does not exist
        TierAlreadySelectedError: If the player is already initialized
    """
    name, preset = resolve_tier(tier)

    # Same lock as match confirmation: both write this player's rating
    async with player_locks.hold(player_id):
        try:
            await get_player(db, player_id)
            if not await models.Player.claim_initial_tier(
                db, player_id, name, preset
            ):
                raise TierAlreadySelectedError(player_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    player = await db.get(models.Player, player_id, populate_existing=True)
    logger.info(
        "Initial tier selected",
        extra={"player_id": player_id, "tier": name, "rating": preset.rating},
    )
    return player


async def list_opponents(
    db: AsyncSession,
    requester_id: int,
    query: str | None = None,
    skip: int = 0,
    limit: int = 10,
) -> tuple[list[models.Player], int]:
    """
    Lists every player except the requester, strongest first.

    ``query`` filters case-insensitively on username, first and last name;
    a leading ``@`` is ignored.
    """
    base_query = select(models.Player).where(models.Player.id != requester_id)

    needle = (query or "").strip().lstrip("@").lower()
    if needle:
        base_query = base_query.where(
            or_(
                *(
                    func.lower(column).contains(needle, autoescape=True)
                    for column in (
                        models.Player.username,
                        models.Player.first_name,
                        models.Player.last_name,
                    )
                )
            )
        )

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    result = await db.execute(
        base_query.order_by(models.Player.rating.desc(), models.Player.id.asc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_leaderboard(
    db: AsyncSession, skip: int = 0, limit: int = 20
) -> tuple[list[tuple[int, models.Player]], int]:
    """Players ranked by rating (ties broken by registration order)."""
    total = (await db.execute(select(func.count(models.Player.id)))).scalar_one()
    result = await db.execute(
        select(models.Player)
        .order_by(models.Player.rating.desc(), models.Player.id.asc())
        .offset(skip)
        .limit(limit)
    )
    ranked = [
        (skip + i + 1, player) for i, player in enumerate(result.scalars().all())
    ]
    return ranked, total
