# src/squashrank/db/models.py

"""Database models for the SquashRank application."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    String,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import (
    Mapped,
    declarative_base,
    mapped_column,
    relationship,
)

from squashrank import config
from squashrank.rating.glicko2_engine import Glicko2Rating

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ===============================================
# Mixins for Common Columns
# ===============================================


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        default=None,
        onupdate=_utcnow,
        nullable=True,
    )


class VersionMixin:
    """Mixin providing a version counter bumped on every rating write."""

    version: Mapped[int] = mapped_column(default=1, nullable=False)


# ===============================================
# Player
# ===============================================


class Player(Base, TimestampMixin, VersionMixin):
    """A squash player identified by their Telegram account.

    Attributes:
        initialized: True once the player has picked an initial tier or had
            a first match confirmed. Tier selection is refused afterwards.
    """

    __tablename__ = "players"
    id: Mapped[int] = mapped_column(primary_key=True)
    telegram_id: Mapped[int] = mapped_column(
        BigInteger, unique=True, nullable=False, index=True
    )
    username: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)

    # Glicko-2 state in the standard (1500-centred) scale
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    rd: Mapped[float] = mapped_column(Float, nullable=False)
    vol: Mapped[float] = mapped_column(Float, nullable=False)

    initialized: Mapped[bool] = mapped_column(default=False, nullable=False)
    tier: Mapped[str | None] = mapped_column(String, nullable=True)

    reported_matches: Mapped[list["Match"]] = relationship(
        back_populates="reporter", foreign_keys="Match.reporter_id"
    )
    received_matches: Mapped[list["Match"]] = relationship(
        back_populates="opponent", foreign_keys="Match.opponent_id"
    )

    __table_args__ = (
        CheckConstraint("rd > 0", name="ck_players_rd_positive"),
        CheckConstraint("vol > 0", name="ck_players_vol_positive"),
    )

    def __init__(self, telegram_id: int, **kw: Any):
        kw.setdefault("rating", config.DEFAULT_RATING)
        kw.setdefault("rd", config.DEFAULT_RD)
        kw.setdefault("vol", config.DEFAULT_VOL)
        kw.setdefault("initialized", False)
        kw.setdefault("version", 1)
        super().__init__(**kw)
        self.telegram_id = telegram_id

    @property
    def display_name(self) -> str:
        """First/last name and @username, falling back to the Telegram ID."""
        parts = [p for p in (self.first_name, self.last_name) if p]
        if self.username:
            parts.append(f"@{self.username}")
        return " ".join(parts).strip() or f"ID {self.telegram_id}"

    @property
    def rating_state(self) -> Glicko2Rating:
        return Glicko2Rating(rating=self.rating, rd=self.rd, vol=self.vol)

    def apply_rating(self, state: Glicko2Rating) -> None:
        """Stores a new rating state on this player."""
        self.rating = state.rating
        self.rd = state.rd
        self.vol = state.vol
        self.initialized = True
        self.version = (self.version or 0) + 1

    @classmethod
    async def find_by_telegram_id(
        cls, db: AsyncSession, telegram_id: int
    ) -> "Player | None":
        """Find a player by their Telegram user ID."""
        query = select(cls).where(cls.telegram_id == telegram_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @classmethod
    async def lock_many(
        cls, db: AsyncSession, player_ids: Sequence[int]
    ) -> dict[int, "Player"]:
        """Load players with row locks, in ascending ID order.

        ``populate_existing`` makes the returned objects reflect the row as
        it is now, not as it was when first loaded into this session.
        """
        query = (
            select(cls)
            .where(cls.id.in_(player_ids))
            .order_by(cls.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return {player.id: player for player in result.scalars().all()}

    @classmethod
    async def claim_initial_tier(
        cls, db: AsyncSession, player_id: int, tier: str, preset: config.TierPreset
    ) -> bool:
        """Write a tier's starting rating and RD unless the player is initialized.

        A confirmed match sets ``initialized`` in the same row, so whichever
        write lands first wins and the other updates zero rows.
        """
        stmt = (
            update(cls)
            .where(cls.id == player_id, cls.initialized.is_(False))
            .values(
                rating=preset.rating,
                rd=preset.rd,
                tier=tier,
                initialized=True,
                updated_at=_utcnow(),
                version=cls.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return bool(result.rowcount == 1)


# ===============================================
# Match
# ===============================================


class MatchStatus(str, enum.Enum):
    """Lifecycle states of a reported match."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class Match(Base, TimestampMixin, VersionMixin):
    """A score reported by one player against another.

    Only the opponent may move a match out of ``pending``; ``confirmed``
    and ``rejected`` are terminal.
    """

    __tablename__ = "matches"
    id: Mapped[int] = mapped_column(primary_key=True)
    reporter_id: Mapped[int] = mapped_column(
        ForeignKey("players.id"), nullable=False, index=True
    )
    opponent_id: Mapped[int] = mapped_column(
        ForeignKey("players.id"), nullable=False, index=True
    )
    reporter_score: Mapped[int] = mapped_column(nullable=False)
    opponent_score: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=MatchStatus.PENDING.value, nullable=False, index=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(default=None, nullable=True)

    reporter: Mapped["Player"] = relationship(
        back_populates="reported_matches", foreign_keys=[reporter_id]
    )
    opponent: Mapped["Player"] = relationship(
        back_populates="received_matches", foreign_keys=[opponent_id]
    )

    __table_args__ = (
        CheckConstraint("reporter_id != opponent_id", name="ck_matches_distinct"),
        CheckConstraint("reporter_score >= 0", name="ck_matches_reporter_score"),
        CheckConstraint("opponent_score >= 0", name="ck_matches_opponent_score"),
        Index("ix_matches_pair_status", "reporter_id", "opponent_id", "status"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == MatchStatus.PENDING.value

    @classmethod
    async def find_latest_pending_between(
        cls, db: AsyncSession, reporter_id: int, opponent_id: int
    ) -> "Match | None":
        """Most recent pending match for an ordered (reporter, opponent) pair."""
        query = (
            select(cls)
            .where(
                cls.reporter_id == reporter_id,
                cls.opponent_id == opponent_id,
                cls.status == MatchStatus.PENDING.value,
            )
            .order_by(cls.id.desc())
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @classmethod
    async def claim(cls, db: AsyncSession, match_id: int, status: MatchStatus) -> bool:
        """Move a match out of ``pending`` if, and only if, it is still pending.

        This is the compare-and-set that admits a single resolver: a second
        caller racing on the same match updates zero rows and gets False.
        """
        now = _utcnow()
        stmt = (
            update(cls)
            .where(cls.id == match_id, cls.status == MatchStatus.PENDING.value)
            .values(
                status=status.value,
                resolved_at=now,
                updated_at=now,
                version=cls.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return bool(result.rowcount == 1)
