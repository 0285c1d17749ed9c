"""coupons and wallet ledger

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    user_role = sa.Enum("customer", "seller", "admin", name="userrole", native_enum=False)
    discount_type = sa.Enum("percentage", "fixed", name="discounttype", native_enum=False)
    wallet_tx_type = sa.Enum(
        "credit",
        "debit",
        "refund",
        "giftcard",
        "cashback",
        name="wallettransactiontype",
        native_enum=False,
    )
    wallet_tx_source = sa.Enum(
        "order_refund",
        "giftcard",
        "cashback",
        "admin",
        "referral",
        "promo",
        name="wallettransactionsource",
        native_enum=False,
    )
    wallet_ref_model = sa.Enum("order", "gift_card", "referral", name="walletsourcerefmodel", native_enum=False)
    wallet_tx_status = sa.Enum("pending", "completed", "failed", name="wallettransactionstatus", native_enum=False)

    op.create_table(
        "users",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", user_role, nullable=False, server_default="customer"),
        sa.Column("wallet_balance", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_balance_non_negative"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "coupons",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("terms_and_conditions", sa.Text(), nullable=True),
        sa.Column("discount_type", discount_type, nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_order_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("max_discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("per_user_limit", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("first_order_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by_user_id", sa.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("used_count >= 0", name="ck_coupons_used_count_non_negative"),
        sa.CheckConstraint("usage_limit IS NULL OR used_count <= usage_limit", name="ck_coupons_used_within_limit"),
    )
    op.create_index(op.f("ix_coupons_code"), "coupons", ["code"], unique=True)
    op.create_index(op.f("ix_coupons_is_active"), "coupons", ["is_active"])

    op.create_table(
        "coupon_usages",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("coupon_id", sa.UUID(as_uuid=True), sa.ForeignKey("coupons.id"), nullable=False),
        sa.Column("user_id", sa.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("order_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("discount_applied", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("order_id", name="uq_coupon_usages_order_id"),
    )
    op.create_index(op.f("ix_coupon_usages_coupon_id"), "coupon_usages", ["coupon_id"])
    op.create_index(op.f("ix_coupon_usages_user_id"), "coupon_usages", ["user_id"])

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", wallet_tx_type, nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("balance", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("source", wallet_tx_source, nullable=False),
        sa.Column("source_ref_id", sa.UUID(as_uuid=True), nullable=True),
        sa.Column("source_ref_model", wallet_ref_model, nullable=True),
        sa.Column("order_id", sa.UUID(as_uuid=True), nullable=True),
        sa.Column("gift_card_code", sa.String(length=16), nullable=True),
        sa.Column("status", wallet_tx_status, nullable=False, server_default="completed"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
        sa.CheckConstraint("balance >= 0", name="ck_wallet_transactions_balance_non_negative"),
        sa.UniqueConstraint("gift_card_code", name="uq_wallet_transactions_gift_card_code"),
    )
    op.create_index("ix_wallet_transactions_user_created", "wallet_transactions", ["user_id", "created_at"])
    op.create_index(op.f("ix_wallet_transactions_type"), "wallet_transactions", ["type"])
    op.create_index(op.f("ix_wallet_transactions_status"), "wallet_transactions", ["status"])


def downgrade() -> None:
    op.drop_index(op.f("ix_wallet_transactions_status"), table_name="wallet_transactions")
    op.drop_index(op.f("ix_wallet_transactions_type"), table_name="wallet_transactions")
    op.drop_index("ix_wallet_transactions_user_created", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_index(op.f("ix_coupon_usages_user_id"), table_name="coupon_usages")
    op.drop_index(op.f("ix_coupon_usages_coupon_id"), table_name="coupon_usages")
    op.drop_table("coupon_usages")
    op.drop_index(op.f("ix_coupons_is_active"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_code"), table_name="coupons")
    op.drop_table("coupons")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
