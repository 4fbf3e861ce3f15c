"""Loyalty customers, vouchers, points ledger and notification queue.

Revision ID: 20261018_01
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261018_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


voucher_instance_status = sa.Enum("active", "used", "expired", name="voucher_instance_status")
transaction_type = sa.Enum("earn", "redeem", "use", "expire", "adjust", name="transaction_type")
notification_queue_status = sa.Enum("pending", "sent", "failed", name="notification_queue_status")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column("surname", sa.String(length=120), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True, unique=True),
        sa.Column("email", sa.String(), nullable=True, unique=True),
        sa.Column("points_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_spend", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_purchases_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notification_prefs", sa.JSON(), nullable=True),
        sa.Column("static_qr_token", sa.Text(), nullable=True),
        sa.Column("static_qr_image", sa.Text(), nullable=True),
        sa.Column("static_qr_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )
    op.create_index("ix_users_last_activity_date", "users", ["last_activity_date"])

    op.create_table(
        "vouchers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("voucher_type", sa.String(length=32), nullable=False, server_default="free_item"),
        sa.Column("points_required", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cash_value", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "voucher_instances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("voucher_id", sa.Integer(), sa.ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", voucher_instance_status, nullable=False, server_default="active"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_by_staff_id", sa.Integer(), nullable=True),
        sa.Column("used_at_outlet", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_voucher_instances_uuid", "voucher_instances", ["uuid"], unique=True)
    op.create_index("ix_voucher_instances_user_id", "voucher_instances", ["user_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("points_delta", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("amount_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("voucher_id", sa.Integer(), sa.ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("outlet", sa.String(), nullable=True),
        sa.Column("staff_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])

    op.create_table(
        "notification_queue",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("notification_type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("status", notification_queue_status, nullable=False, server_default="pending"),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notification_queue_user_id", "notification_queue", ["user_id"])
    op.create_index("ix_notification_queue_notification_type", "notification_queue", ["notification_type"])


def downgrade() -> None:
    op.drop_index("ix_notification_queue_notification_type", table_name="notification_queue")
    op.drop_index("ix_notification_queue_user_id", table_name="notification_queue")
    op.drop_table("notification_queue")
    op.drop_index("ix_transactions_user_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_voucher_instances_user_id", table_name="voucher_instances")
    op.drop_index("ix_voucher_instances_uuid", table_name="voucher_instances")
    op.drop_table("voucher_instances")
    op.drop_table("vouchers")
    op.drop_index("ix_users_last_activity_date", table_name="users")
    op.drop_table("users")

    notification_queue_status.drop(op.get_bind(), checkfirst=True)
    transaction_type.drop(op.get_bind(), checkfirst=True)
    voucher_instance_status.drop(op.get_bind(), checkfirst=True)
