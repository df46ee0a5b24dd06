"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-01-01 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="customer"),
        sa.Column("push_token", sa.String(length=255)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "brands",
        sa.Column("brand_id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("contact_email", sa.String(length=255)),
        sa.Column("whatsapp_number", sa.String(length=32)),
        sa.Column("preferred_communication", sa.JSON(), nullable=False),
        sa.Column("communication_mode", sa.String(length=16), nullable=False, server_default="email"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            # ORM-managed updated_at (no database trigger).
            nullable=False,
        ),
    )
    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.String(length=24), primary_key=True),
        sa.Column("short_code", sa.String(length=6), nullable=False, unique=True),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255)),
        sa.Column("contact_number", sa.String(length=32), nullable=False),
        sa.Column("alternate_contact_number", sa.String(length=32)),
        sa.Column("address", sa.String(length=500), nullable=False),
        sa.Column("alternate_address", sa.String(length=500)),
        sa.Column("landmark", sa.String(length=200)),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("state", sa.String(length=100), nullable=False),
        sa.Column("pin_code", sa.String(length=16), nullable=False),
        sa.Column("service_type", sa.String(length=32), nullable=False),
        sa.Column("problem_description", sa.Text()),
        sa.Column("date_of_purchase", sa.String(length=32)),
        sa.Column("category_name", sa.String(length=100)),
        sa.Column("brand", sa.String(length=100), nullable=False),
        sa.Column("model", sa.String(length=100), nullable=False),
        sa.Column("serial_number", sa.String(length=100)),
        sa.Column("invoice_number", sa.String(length=100)),
        sa.Column("invoice_image", sa.String(length=500)),
        sa.Column("preferred_datetime", sa.DateTime(timezone=True)),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="Pending"),
        sa.Column("assigned_to", sa.String(length=36), sa.ForeignKey("users.user_id")),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.user_id")),
        sa.Column("last_reschedule_email_at", sa.DateTime(timezone=True)),
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_bookings_created_by_created_at", "bookings", ["created_by", "created_at"])
    op.create_index("ix_bookings_assigned_status", "bookings", ["assigned_to", "status"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_email_created_at", "bookings", ["email", "created_at"])

    op.create_table(
        "booking_updates",
        sa.Column("update_id", sa.String(length=36), primary_key=True),
        sa.Column(
            "booking_id",
            sa.String(length=24),
            sa.ForeignKey("bookings.booking_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_by", sa.String(length=36)),
    )
    op.create_index("ix_booking_updates_booking_id", "booking_updates", ["booking_id"])

    op.create_table(
        "email_logs",
        sa.Column("email_log_id", sa.String(length=36), primary_key=True),
        sa.Column("from_address", sa.String(length=255), nullable=False),
        sa.Column("to_address", sa.Text()),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column("reply_text", sa.Text()),
        sa.Column("email_type", sa.String(length=16), nullable=False, server_default="incoming"),
        sa.Column("reply_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("message_id", sa.String(length=255)),
        sa.Column("in_reply_to", sa.String(length=255)),
        sa.Column("references", sa.Text()),
        sa.Column(
            "booking_id",
            sa.String(length=24),
            sa.ForeignKey("bookings.booking_id", ondelete="SET NULL"),
        ),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_email_logs_booking_timestamp", "email_logs", ["booking_id", "timestamp"])
    op.create_index("ix_email_logs_message_id", "email_logs", ["message_id"])
    op.create_index("ix_email_logs_from_timestamp", "email_logs", ["from_address", "timestamp"])

    op.create_table(
        "activity_logs",
        sa.Column("activity_id", sa.String(length=36), primary_key=True),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("booking_id", sa.String(length=24)),
        sa.Column("brand_name", sa.String(length=100)),
        sa.Column("severity", sa.String(length=10), nullable=False, server_default="info"),
        sa.Column("metadata", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])
    op.create_index("ix_activity_logs_booking_created", "activity_logs", ["booking_id", "created_at"])
    op.create_index("ix_activity_logs_type", "activity_logs", ["type"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_type", table_name="activity_logs")
    op.drop_index("ix_activity_logs_booking_created", table_name="activity_logs")
    op.drop_index("ix_activity_logs_created_at", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_email_logs_from_timestamp", table_name="email_logs")
    op.drop_index("ix_email_logs_message_id", table_name="email_logs")
    op.drop_index("ix_email_logs_booking_timestamp", table_name="email_logs")
    op.drop_table("email_logs")
    op.drop_index("ix_booking_updates_booking_id", table_name="booking_updates")
    op.drop_table("booking_updates")
    op.drop_index("ix_bookings_email_created_at", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_assigned_status", table_name="bookings")
    op.drop_index("ix_bookings_created_by_created_at", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("brands")
    op.drop_table("users")
