from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.activity import ActivityRecorder, ActivitySeverity, ActivityType
from servicedesk.domain.bookings.db_models import Booking, BookingUpdate
from servicedesk.domain.bookings.service import find_booking_by_identifier
from servicedesk.domain.brands.service import get_brand_by_name
from servicedesk.domain.errors import NotFoundError, PermissionDeniedError
from servicedesk.domain.users.db_models import User
from servicedesk.domain.users.identity import Requester
from servicedesk.infra.automation import AutomationClient
from servicedesk.settings import settings

logger = logging.getLogger(__name__)

REMINDER_SENT = "Reminder sent."
REMINDER_UNVERIFIED = "Attempted reminder; please verify the booking webhook."


@dataclass(frozen=True)
class RescheduleOutcome:
    booking: Booking
    webhook_ok: bool
    last_reschedule_email_at: datetime
    reschedule_count: int
    next_available_at: datetime

    @property
    def message(self) -> str:
        return REMINDER_SENT if self.webhook_ok else REMINDER_UNVERIFIED


def can_reschedule(booking: Booking, requester: Requester) -> bool:
    if requester.is_privileged:
        return True
    if booking.created_by and booking.created_by == requester.user_id:
        return True
    return bool(
        booking.email and requester.email and booking.email.lower() == requester.email.lower()
    )


async def creator_email(session: AsyncSession, booking: Booking) -> str | None:
    if not booking.created_by:
        return None
    user = await session.get(User, booking.created_by)
    return user.email if user is not None else None


async def request_reschedule(
    session: AsyncSession,
    identifier: str | None,
    requester: Requester,
    *,
    automation: AutomationClient,
    audit: ActivityRecorder,
) -> RescheduleOutcome:
    """Send the brand a reminder about a booking.

    No cooldown is enforced; ``next_available_at`` is informational only.
    The bridge trigger may fail silently and only the final webhook decides
    the reported outcome.
    """
    booking = await find_booking_by_identifier(session, identifier)
    if booking is None:
        raise NotFoundError(detail="Booking not found")
    if not can_reschedule(booking, requester):
        raise PermissionDeniedError(detail="You do not have permission to reschedule this booking.")

    brand = await get_brand_by_name(session, booking.brand, active_only=False)
    try:
        bridge_result = await automation.trigger_booking_email(booking, brand)
        if not bridge_result.success:
            logger.info(
                "reschedule_bridge_not_sent",
                extra={"extra": {"booking_id": booking.booking_id, "reason": bridge_result.error}},
            )
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "reschedule_bridge_failed",
            extra={"extra": {"booking_id": booking.booking_id, "reason": type(exc).__name__}},
        )

    now = datetime.now(timezone.utc)
    booking.reschedule_count = (booking.reschedule_count or 0) + 1
    booking.last_reschedule_email_at = now
    booking.updates.append(
        BookingUpdate(
            message=f"Reschedule email triggered (#{booking.reschedule_count})",
            timestamp=now,
            updated_by=requester.user_id,
        )
    )
    await session.commit()
    await session.refresh(booking)

    await audit.record(
        ActivityType.BOOKING_RESCHEDULE_TRIGGERED,
        f"Reschedule email triggered for {booking.customer_name}",
        booking_id=booking.booking_id,
        metadata={"rescheduleCount": booking.reschedule_count, "triggeredBy": requester.label},
        severity=ActivitySeverity.INFO,
    )

    fallback_email = None if booking.email else await creator_email(session, booking)
    webhook_result = await automation.send_booking_webhook(booking, brand, fallback_email=fallback_email)
    if not webhook_result.success:
        logger.warning(
            "reschedule_webhook_failed",
            extra={"extra": {"booking_id": booking.booking_id, "reason": webhook_result.error}},
        )

    return RescheduleOutcome(
        booking=booking,
        webhook_ok=webhook_result.success,
        last_reschedule_email_at=now,
        reschedule_count=booking.reschedule_count,
        next_available_at=now + timedelta(hours=settings.reschedule_interval_hours),
    )
