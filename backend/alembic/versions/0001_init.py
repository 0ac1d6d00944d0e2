"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    if "coupons" not in existing_tables:
        op.create_table(
            "coupons",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(), nullable=False),
            sa.Column("description", sa.String(), nullable=False),
            sa.Column("type", sa.Enum("percentage", "fixed", name="coupontype"), nullable=False),
            sa.Column("value", sa.Float(), nullable=False),
            sa.Column("minimum_amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("maximum_discount", sa.Float(), nullable=True),
            sa.Column("usage_limit", sa.Integer(), nullable=True),
            sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("user_limit", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("applicable_products", sa.JSON(), nullable=False),
            sa.Column("applicable_categories", sa.JSON(), nullable=False),
            sa.Column("exclude_products", sa.JSON(), nullable=False),
            sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
            sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
            sa.CheckConstraint("used_count >= 0", name="coupons_used_count_nonneg_chk"),
            sa.CheckConstraint("usage_limit IS NULL OR used_count <= usage_limit", name="coupons_usage_limit_chk"),
        )
        op.create_index("ix_coupons_id", "coupons", ["id"])
        op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)
        op.create_index("ix_coupons_created_by", "coupons", ["created_by"])

    if "coupon_redemptions" not in existing_tables:
        op.create_table(
            "coupon_redemptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id"), nullable=False),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("order_amount", sa.Float(), nullable=False),
            sa.Column("discount_amount", sa.Float(), nullable=False),
        )
        op.create_index("ix_coupon_redemptions_id", "coupon_redemptions", ["id"])
        op.create_index("ix_coupon_redemptions_coupon_id", "coupon_redemptions", ["coupon_id"])
        op.create_index("ix_coupon_redemptions_coupon_user", "coupon_redemptions", ["coupon_id", "user_id"])

    if "chats" not in existing_tables:
        op.create_table(
            "chats",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("participants", sa.JSON(), nullable=False),
            sa.Column("product_id", sa.String(), nullable=True),
            sa.Column("last_message_id", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
        )
        op.create_index("ix_chats_id", "chats", ["id"])
        op.create_index("ix_chats_product_id", "chats", ["product_id"])

    if "messages" not in existing_tables:
        op.create_table(
            "messages",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("chat_id", sa.Integer(), sa.ForeignKey("chats.id"), nullable=False),
            sa.Column("sender_id", sa.String(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("message_type", sa.Enum("text", "image", "file", name="messagetype"), nullable=False),
            sa.Column("attachments", sa.JSON(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
        )
        op.create_index("ix_messages_id", "messages", ["id"])
        op.create_index("ix_messages_chat_id", "messages", ["chat_id"])
        op.create_index("ix_messages_sender_id", "messages", ["sender_id"])

    if "message_reads" not in existing_tables:
        op.create_table(
            "message_reads",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("message_id", sa.Integer(), sa.ForeignKey("messages.id"), nullable=False),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint("message_id", "user_id", name="uq_message_reads_message_user"),
        )
        op.create_index("ix_message_reads_id", "message_reads", ["id"])
        op.create_index("ix_message_reads_message_id", "message_reads", ["message_id"])


def downgrade() -> None:
    op.drop_table("message_reads")
    op.drop_table("messages")
    op.drop_table("chats")
    op.drop_table("coupon_redemptions")
    op.drop_table("coupons")
