"""Initial schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


AD_STATUSES = ("draft", "published", "active", "completed")


def upgrade() -> None:
    ad_status = sa.Enum(*AD_STATUSES, name="ad_status", native_enum=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("profile_image_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
    )

    op.create_table(
        "ad_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.UniqueConstraint("account_id", name="uq_ad_accounts_account_id"),
    )

    op.create_table(
        "ads",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("template_id", sa.Integer(), sa.ForeignKey("templates.id", ondelete="SET NULL"), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("primary_text", sa.Text(), nullable=False),
        sa.Column("headline", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cta", sa.String(length=64), nullable=False),
        sa.Column("website_url", sa.Text(), nullable=False),
        sa.Column("brand_name", sa.Text(), nullable=False),
        sa.Column("brand_logo_url", sa.Text(), nullable=True),
        sa.Column("ad_type", sa.String(length=64), nullable=True),
        sa.Column("ad_format", sa.String(length=64), nullable=True),
        sa.Column("customize_placements", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("status", ad_status, server_default="draft", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("meta_ad_id", sa.Text(), nullable=True),
        sa.Column("statistics", sa.JSON(), nullable=False),
        sa.Column("targeting", sa.JSON(), nullable=True),
    )
    op.create_index("idx_ads_status_updated", "ads", ["status", "updated_at"])

    op.create_table(
        "ad_sets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_objective", sa.String(length=64), nullable=False),
        sa.Column("placements", sa.JSON(), nullable=False),
        sa.Column("ad_id", sa.Integer(), sa.ForeignKey("ads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("campaign_id", sa.String(length=128), nullable=True),
        sa.Column("meta_ad_set_id", sa.Text(), nullable=True),
        sa.Column("status", ad_status, server_default="draft", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_ad_sets_ad_id", "ad_sets", ["ad_id"])

    op.create_table(
        "sessions",
        sa.Column("sid", sa.String(length=128), primary_key=True),
        sa.Column("sess", sa.JSON(), nullable=False),
        sa.Column("expire", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sessions_expire", "sessions", ["expire"])

    op.create_table(
        "oauth_states",
        sa.Column("state", sa.String(length=128), primary_key=True),
        sa.Column("session_id", sa.String(length=128), nullable=False),
        sa.Column("provider", sa.Enum("meta", name="oauth_provider", native_enum=False), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_oauth_states_session_id", "oauth_states", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_oauth_states_session_id", table_name="oauth_states")
    op.drop_table("oauth_states")
    op.drop_index("ix_sessions_expire", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_ad_sets_ad_id", table_name="ad_sets")
    op.drop_table("ad_sets")
    op.drop_index("idx_ads_status_updated", table_name="ads")
    op.drop_table("ads")
    op.drop_table("ad_accounts")
    op.drop_table("templates")
    op.drop_table("users")
