from __future__ import annotations

import secrets
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from servicedesk.domain.bookings.statuses import BOOKING_STATUS_PENDING, SERVICE_TYPE_INSTALLATION
from servicedesk.infra.db import Base

SHORT_CODE_LENGTH = 6
INTERNAL_ID_LENGTH = 24


def new_internal_id() -> str:
    return secrets.token_hex(INTERNAL_ID_LENGTH // 2)


class Booking(Base):
    __tablename__ = "bookings"

    booking_id: Mapped[str] = mapped_column(
        String(INTERNAL_ID_LENGTH),
        primary_key=True,
        default=new_internal_id,
    )
    short_code: Mapped[str] = mapped_column(String(SHORT_CODE_LENGTH), nullable=False, unique=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    contact_number: Mapped[str] = mapped_column(String(32), nullable=False)
    alternate_contact_number: Mapped[str | None] = mapped_column(String(32))
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    alternate_address: Mapped[str | None] = mapped_column(String(500))
    landmark: Mapped[str | None] = mapped_column(String(200))
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    pin_code: Mapped[str] = mapped_column(String(16), nullable=False)
    service_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=SERVICE_TYPE_INSTALLATION
    )
    problem_description: Mapped[str | None] = mapped_column(Text)
    date_of_purchase: Mapped[str | None] = mapped_column(String(32))
    category_name: Mapped[str | None] = mapped_column(String(100))
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    serial_number: Mapped[str | None] = mapped_column(String(100))
    invoice_number: Mapped[str | None] = mapped_column(String(100))
    invoice_image: Mapped[str | None] = mapped_column(String(500))
    preferred_datetime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=BOOKING_STATUS_PENDING)
    assigned_to: Mapped[str | None] = mapped_column(ForeignKey("users.user_id"), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.user_id"), nullable=True)
    last_reschedule_email_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reschedule_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    updates: Mapped[list["BookingUpdate"]] = relationship(
        "BookingUpdate",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingUpdate.timestamp",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_bookings_created_by_created_at", "created_by", "created_at"),
        Index("ix_bookings_assigned_status", "assigned_to", "status"),
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_email_created_at", "email", "created_at"),
    )


class BookingUpdate(Base):
    __tablename__ = "booking_updates"

    update_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    booking_id: Mapped[str] = mapped_column(
        ForeignKey("bookings.booking_id", ondelete="CASCADE"), nullable=False, index=True
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    booking: Mapped[Booking] = relationship("Booking", back_populates="updates")
