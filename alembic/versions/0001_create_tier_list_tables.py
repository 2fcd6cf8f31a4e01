"""create players, tiers and admins tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("roblox_id", sa.String(length=50), nullable=False, unique=True),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=False),
        sa.Column("combat_title", sa.String(length=100), server_default="Pirate"),
        sa.Column("points", sa.Integer(), server_default="0"),
        sa.Column("bounty", sa.String(length=20), server_default="0"),
        sa.Column("region", sa.String(length=10), server_default="NA"),
        sa.Column("webhook_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_players_id", "players", ["id"])

    op.create_table(
        "tiers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("tier", sa.String(length=5), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("player_id", "category", name="uq_tiers_player_category"),
    )
    op.create_index("ix_tiers_id", "tiers", ["id"])
    op.create_index("ix_tiers_player_id", "tiers", ["player_id"])

    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=100), nullable=False, unique=True),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_manage_players", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_manage_tiers", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_manage_admins", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_delete_data", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_view_admins", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_manage_database", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_change_settings", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_admins_id", "admins", ["id"])


def downgrade():
    op.drop_table("admins")
    op.drop_table("tiers")
    op.drop_table("players")
