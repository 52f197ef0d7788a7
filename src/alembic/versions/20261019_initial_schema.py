"""Create players and matches tables

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

Players carry their current Glicko-2 state (rating, rd, vol) and an
explicit ``initialized`` flag. Matches hold the reported score and the
pending/confirmed/rejected status.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create players and matches with their indexes."""
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_id", sa.BigInteger(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=False),
        sa.Column("rd", sa.Float(), nullable=False),
        sa.Column("vol", sa.Float(), nullable=False),
        sa.Column("initialized", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("tier", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("rd > 0", name="ck_players_rd_positive"),
        sa.CheckConstraint("vol > 0", name="ck_players_vol_positive"),
    )
    op.create_index(
        "ix_players_telegram_id", "players", ["telegram_id"], unique=True
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "reporter_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False
        ),
        sa.Column(
            "opponent_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False
        ),
        sa.Column("reporter_score", sa.Integer(), nullable=False),
        sa.Column("opponent_score", sa.Integer(), nullable=False),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="pending"
        ),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("reporter_id != opponent_id", name="ck_matches_distinct"),
        sa.CheckConstraint("reporter_score >= 0", name="ck_matches_reporter_score"),
        sa.CheckConstraint("opponent_score >= 0", name="ck_matches_opponent_score"),
    )
    op.create_index("ix_matches_reporter_id", "matches", ["reporter_id"])
    op.create_index("ix_matches_opponent_id", "matches", ["opponent_id"])
    op.create_index("ix_matches_status", "matches", ["status"])
    op.create_index(
        "ix_matches_pair_status", "matches", ["reporter_id", "opponent_id", "status"]
    )


def downgrade() -> None:
    """Drop matches and players."""
    op.drop_index("ix_matches_pair_status", "matches")
    op.drop_index("ix_matches_status", "matches")
    op.drop_index("ix_matches_opponent_id", "matches")
    op.drop_index("ix_matches_reporter_id", "matches")
    op.drop_table("matches")
    op.drop_index("ix_players_telegram_id", "players")
    op.drop_table("players")
