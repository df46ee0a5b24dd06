from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from servicedesk.infra.db import Base

EMAIL_TYPE_OUTGOING = "outgoing"
EMAIL_TYPE_INCOMING = "incoming"
EMAIL_TYPE_REPLY = "reply"
EMAIL_TYPES = (EMAIL_TYPE_OUTGOING, EMAIL_TYPE_INCOMING, EMAIL_TYPE_REPLY)
HEADER_VALUE_MAX_LENGTH = 255


class EmailMessage(Base):
    __tablename__ = "email_logs"

    email_log_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    from_address: Mapped[str] = mapped_column(String(HEADER_VALUE_MAX_LENGTH), nullable=False)
    to_address: Mapped[str | None] = mapped_column(Text)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    reply_text: Mapped[str | None] = mapped_column(Text)
    email_type: Mapped[str] = mapped_column(String(16), nullable=False, default=EMAIL_TYPE_INCOMING)
    reply_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message_id: Mapped[str | None] = mapped_column(String(HEADER_VALUE_MAX_LENGTH))
    in_reply_to: Mapped[str | None] = mapped_column(String(HEADER_VALUE_MAX_LENGTH))
    references: Mapped[str | None] = mapped_column(Text)
    booking_id: Mapped[str | None] = mapped_column(
        ForeignKey("bookings.booking_id", ondelete="SET NULL"), nullable=True
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_email_logs_booking_timestamp", "booking_id", "timestamp"),
        Index("ix_email_logs_message_id", "message_id"),
        Index("ix_email_logs_from_timestamp", "from_address", "timestamp"),
    )
