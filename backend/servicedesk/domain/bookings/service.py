from __future__ import annotations

import logging
import re
import secrets
import string
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.bookings.db_models import (
    INTERNAL_ID_LENGTH,
    SHORT_CODE_LENGTH,
    Booking,
    BookingUpdate,
)
from servicedesk.domain.bookings.schemas import BookingCreateRequest, BookingStatusUpdateRequest
from servicedesk.domain.bookings.statuses import BOOKING_STATUS_PENDING
from servicedesk.domain.errors import NotFoundError, PersistenceError
from servicedesk.infra.metrics import metrics

logger = logging.getLogger(__name__)

SHORT_CODE_ALPHABET = string.ascii_uppercase + string.digits
SHORT_CODE_MAX_ATTEMPTS = 10
INTERNAL_ID_RE = re.compile(rf"^[a-f0-9]{{{INTERNAL_ID_LENGTH}}}$")


def generate_short_code() -> str:
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(SHORT_CODE_LENGTH))


async def short_code_exists(session: AsyncSession, code: str) -> bool:
    result = await session.execute(select(Booking.booking_id).where(Booking.short_code == code).limit(1))
    return result.scalar_one_or_none() is not None


async def allocate_short_code(session: AsyncSession, *, generator=generate_short_code) -> str:
    for _ in range(SHORT_CODE_MAX_ATTEMPTS):
        candidate = generator()
        if not await short_code_exists(session, candidate):
            return candidate
    logger.error("short_code_exhausted", extra={"extra": {"attempts": SHORT_CODE_MAX_ATTEMPTS}})
    raise PersistenceError(detail="Unable to generate unique booking ID")


async def find_booking_by_identifier(session: AsyncSession, identifier: str | None) -> Booking | None:
    """Resolve a booking by internal id, falling back to its short code."""
    if not identifier:
        return None
    raw = identifier.strip()
    if not raw:
        return None
    booking = None
    if INTERNAL_ID_RE.match(raw.lower()):
        booking = await session.get(Booking, raw.lower())
    if booking is None:
        result = await session.execute(select(Booking).where(Booking.short_code == raw.upper()).limit(1))
        booking = result.scalar_one_or_none()
    return booking


async def find_booking_by_token(session: AsyncSession, token: str) -> Booking | None:
    """Validate a token extracted from an inbound message.

    A token of short-code length is only ever looked up as a short code;
    anything else only as an internal id.
    """
    token = token.strip()
    if len(token) == SHORT_CODE_LENGTH:
        result = await session.execute(select(Booking).where(Booking.short_code == token.upper()).limit(1))
        return result.scalar_one_or_none()
    if INTERNAL_ID_RE.match(token.lower()):
        return await session.get(Booking, token.lower())
    return None


async def get_booking(session: AsyncSession, identifier: str) -> Booking:
    booking = await find_booking_by_identifier(session, identifier)
    if booking is None:
        raise NotFoundError(detail="Booking not found")
    return booking


def _build_booking(request: BookingCreateRequest, short_code: str, created_by: str | None) -> Booking:
    return Booking(
        short_code=short_code,
        customer_name=request.customer_name.strip(),
        email=str(request.email).strip() if request.email else None,
        contact_number=request.contact_number.strip(),
        alternate_contact_number=request.alternate_contact_number,
        address=request.address.strip(),
        alternate_address=request.alternate_address,
        landmark=request.landmark,
        city=request.city.strip(),
        state=request.state.strip(),
        pin_code=request.pin_code.strip(),
        service_type=request.service_type,
        problem_description=request.problem_description,
        date_of_purchase=request.date_of_purchase,
        category_name=request.category_name,
        brand=request.brand.strip(),
        model=request.model.strip(),
        serial_number=request.serial_number,
        invoice_number=request.invoice_number,
        invoice_image=request.invoice_image,
        preferred_datetime=request.preferred_datetime,
        status=BOOKING_STATUS_PENDING,
        created_by=created_by,
        reschedule_count=0,
        created_at=datetime.now(timezone.utc),
        updates=[],
    )


async def create_booking(
    session: AsyncSession,
    request: BookingCreateRequest,
    *,
    created_by: str | None = None,
    short_code_generator=generate_short_code,
) -> Booking:
    """Insert a Pending booking under a freshly allocated short code.

    A unique violation on the short code at commit time allocates a new code,
    bounded by ``SHORT_CODE_MAX_ATTEMPTS``.
    """
    for attempt in range(1, SHORT_CODE_MAX_ATTEMPTS + 1):
        short_code = await allocate_short_code(session, generator=short_code_generator)
        booking = _build_booking(request, short_code, created_by)
        session.add(booking)
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            if await short_code_exists(session, short_code):
                logger.warning(
                    "short_code_collision",
                    extra={"extra": {"short_code": short_code, "attempt": attempt}},
                )
                continue
            logger.error("booking_persist_failed", extra={"extra": {"reason": type(exc).__name__}})
            raise PersistenceError(detail="Unable to persist booking") from exc
        await session.refresh(booking)
        metrics.record_booking("created")
        logger.info(
            "booking_created",
            extra={"extra": {"booking_id": booking.booking_id, "short_code": booking.short_code}},
        )
        return booking
    logger.error("short_code_exhausted", extra={"extra": {"attempts": SHORT_CODE_MAX_ATTEMPTS}})
    raise PersistenceError(detail="Unable to generate unique booking ID")


async def update_booking_status(
    session: AsyncSession,
    identifier: str,
    request: BookingStatusUpdateRequest,
    *,
    updated_by: str | None = None,
) -> tuple[Booking, str]:
    booking = await get_booking(session, identifier)
    old_status = booking.status
    booking.status = request.status
    if request.assigned_to:
        booking.assigned_to = request.assigned_to
    if request.message:
        booking.updates.append(
            BookingUpdate(
                message=request.message,
                timestamp=datetime.now(timezone.utc),
                updated_by=updated_by,
            )
        )
    await session.commit()
    await session.refresh(booking)
    metrics.record_booking("status_updated")
    logger.info(
        "booking_status_updated",
        extra={"extra": {"booking_id": booking.booking_id, "old": old_status, "new": booking.status}},
    )
    return booking, old_status
