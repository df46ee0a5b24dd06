from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, String, Text, event, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from servicedesk.infra.db import Base


class ActivityType(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_UPDATED = "booking_updated"
    STATUS_UPDATED = "status_updated"
    MESSAGE_SENT = "message_sent"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_FAILED = "notification_failed"
    BRAND_CREATED = "brand_created"
    BRAND_UPDATED = "brand_updated"
    BOOKING_EMAIL_SENT = "booking_email_sent"
    BOOKING_EMAIL_FAILED = "booking_email_failed"
    BOOKING_WEBHOOK_SENT = "booking_webhook_sent"
    BOOKING_WEBHOOK_FAILED = "booking_webhook_failed"
    BOOKING_RESCHEDULE_TRIGGERED = "booking_reschedule_triggered"
    EMAIL_RECEIVED = "email_received"


class ActivitySeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ActivityEvent(Base):
    __tablename__ = "activity_logs"

    activity_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    booking_id: Mapped[str | None] = mapped_column(String(24), nullable=True)
    brand_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    severity: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ActivitySeverity.INFO.value
    )
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_activity_logs_created_at", "created_at"),
        Index("ix_activity_logs_booking_created", "booking_id", "created_at"),
        Index("ix_activity_logs_type", "type"),
    )


@event.listens_for(ActivityEvent, "before_update", propagate=True)
def _prevent_activity_updates(mapper, connection, target) -> None:  # noqa: ARG001
    raise ValueError("Activity records are immutable")


@event.listens_for(ActivityEvent, "before_delete", propagate=True)
def _prevent_activity_deletes(mapper, connection, target) -> None:  # noqa: ARG001
    raise ValueError("Activity records cannot be deleted")
