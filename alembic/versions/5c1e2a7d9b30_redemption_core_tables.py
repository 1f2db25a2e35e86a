"""redemption_core_tables

Revision ID: 5c1e2a7d9b30
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5c1e2a7d9b30"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("membership_plan", sa.String(16), nullable=False, server_default=sa.text("'basic'")),
        sa.Column("total_savings", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("deals_claimed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("role IN ('customer','vendor','admin','superadmin')", name="ck_users_role"),
        sa.CheckConstraint(
            "membership_plan IN ('basic','premium','ultimate')",
            name="ck_users_membership_plan",
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "vendors",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("business_name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=False),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=True),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=True),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("user_id", name="uq_vendors_user_id"),
    )

    op.create_table(
        "deals",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("vendor_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("discount_percentage", sa.Integer(), nullable=False),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("discounted_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("current_redemptions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("required_membership", sa.String(16), nullable=False, server_default=sa.text("'basic'")),
        sa.Column("address", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=True),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=True),
        sa.Column("verification_pin", sa.Text(), nullable=False),
        sa.Column("pin_salt", sa.String(64), nullable=True),
        sa.Column("pin_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pin_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_deals_discount_percentage_range",
        ),
        sa.CheckConstraint(
            "required_membership IN ('basic','premium','ultimate')",
            name="ck_deals_required_membership",
        ),
        sa.CheckConstraint("current_redemptions >= 0", name="ck_deals_current_redemptions_non_negative"),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendors.id"]),
    )
    op.create_index("idx_deals_vendor", "deals", ["vendor_id"])
    op.create_index("idx_deals_active_approved", "deals", ["is_active", "is_approved"])
    op.create_index("idx_deals_category", "deals", ["category"])

    op.create_table(
        "deal_claims",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("deal_id", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("savings_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("bill_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("actual_savings", sa.Numeric(10, 2), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','used','claimed','expired')",
            name="ck_deal_claims_status",
        ),
        sa.CheckConstraint("savings_amount >= 0", name="ck_deal_claims_savings_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"]),
    )
    op.create_index("idx_deal_claims_user_deal", "deal_claims", ["user_id", "deal_id"])
    op.create_index("idx_deal_claims_deal", "deal_claims", ["deal_id"])

    op.create_table(
        "pin_attempts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("deal_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("result", sa.String(24), nullable=False),
        sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "result IN ('ACCEPTED','INVALID_FORMAT','DEAL_NOT_FOUND','DEAL_UNAVAILABLE',"
            "'RATE_LIMITED','INVALID_PIN')",
            name="ck_pin_attempts_result",
        ),
    )
    op.create_index("idx_pin_attempts_deal_time", "pin_attempts", ["deal_id", "attempted_at"])
    op.create_index(
        "idx_pin_attempts_deal_user_time",
        "pin_attempts",
        ["deal_id", "user_id", "attempted_at"],
    )
    op.create_index(
        "idx_pin_attempts_deal_ip_time",
        "pin_attempts",
        ["deal_id", "ip_address", "attempted_at"],
    )

    op.create_table(
        "system_logs",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_system_logs_action_time", "system_logs", ["action", "created_at"])
    op.create_index("idx_system_logs_user_time", "system_logs", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_system_logs_user_time", table_name="system_logs")
    op.drop_index("idx_system_logs_action_time", table_name="system_logs")
    op.drop_table("system_logs")
    op.drop_index("idx_pin_attempts_deal_ip_time", table_name="pin_attempts")
    op.drop_index("idx_pin_attempts_deal_user_time", table_name="pin_attempts")
    op.drop_index("idx_pin_attempts_deal_time", table_name="pin_attempts")
    op.drop_table("pin_attempts")
    op.drop_index("idx_deal_claims_deal", table_name="deal_claims")
    op.drop_index("idx_deal_claims_user_deal", table_name="deal_claims")
    op.drop_table("deal_claims")
    op.drop_index("idx_deals_category", table_name="deals")
    op.drop_index("idx_deals_active_approved", table_name="deals")
    op.drop_index("idx_deals_vendor", table_name="deals")
    op.drop_table("deals")
    op.drop_table("vendors")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")
