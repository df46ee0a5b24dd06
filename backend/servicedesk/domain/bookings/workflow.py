"""Best-effort work that follows a booking once it is durable.

Nothing here raises to the caller: every downstream failure becomes a log
line and, where relevant, an activity event.
"""

from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.activity import ActivityRecorder, ActivitySeverity, ActivityType
from servicedesk.domain.bookings.db_models import Booking
from servicedesk.domain.bookings.reschedule import creator_email
from servicedesk.domain.bookings.statuses import BOOKING_STATUS_PENDING
from servicedesk.domain.brands.service import get_brand_by_name
from servicedesk.domain.notifications.dispatcher import NotificationDispatcher
from servicedesk.infra.automation import AutomationClient
from servicedesk.infra.realtime import EVENT_BOOKING_CREATED, EVENT_BOOKING_UPDATED, EventBroadcaster

logger = logging.getLogger(__name__)


async def run_booking_created(
    booking_id: str,
    *,
    session_factory: Callable[[], AsyncSession],
    dispatcher: NotificationDispatcher,
    automation: AutomationClient,
    audit: ActivityRecorder,
    broadcaster: EventBroadcaster | None = None,
) -> None:
    async with session_factory() as session:
        booking = await session.get(Booking, booking_id)
        if booking is None:
            logger.warning("booking_workflow_missing", extra={"extra": {"booking_id": booking_id}})
            return
        active_brand = await get_brand_by_name(session, booking.brand)
        any_brand = active_brand or await get_brand_by_name(session, booking.brand, active_only=False)
        fallback_email = None if booking.email else await creator_email(session, booking)

    await audit.record(
        ActivityType.BOOKING_CREATED,
        f"New booking created for {booking.customer_name} - {booking.brand} {booking.model}",
        booking_id=booking.booking_id,
        metadata={
            "customerName": booking.customer_name,
            "brand": booking.brand,
            "model": booking.model,
            "status": booking.status,
            "bookingId": booking.short_code,
        },
        severity=ActivitySeverity.SUCCESS,
    )

    try:
        await dispatcher.dispatch_booking_created(booking, active_brand)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "booking_dispatch_failed",
            extra={"extra": {"booking_id": booking.booking_id, "reason": type(exc).__name__}},
        )

    if booking.status == BOOKING_STATUS_PENDING:
        await _trigger_bridge(booking, any_brand, automation=automation, audit=audit)

    await _send_webhook(booking, any_brand, fallback_email, automation=automation, audit=audit)

    if broadcaster is not None:
        await _emit(
            broadcaster,
            EVENT_BOOKING_CREATED,
            {
                "bookingId": booking.booking_id,
                "shortCode": booking.short_code,
                "customerName": booking.customer_name,
                "brand": booking.brand,
                "model": booking.model,
                "status": booking.status,
                "createdAt": booking.created_at,
            },
        )


async def _trigger_bridge(booking: Booking, brand, *, automation: AutomationClient, audit: ActivityRecorder) -> None:
    try:
        result = await automation.trigger_booking_email(booking, brand)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "booking_bridge_failed",
            extra={"extra": {"booking_id": booking.booking_id, "reason": type(exc).__name__}},
        )
        await audit.record(
            ActivityType.BOOKING_EMAIL_FAILED,
            f"Booking email workflow error for {booking.customer_name}",
            booking_id=booking.booking_id,
            metadata={"error": type(exc).__name__},
            severity=ActivitySeverity.ERROR,
        )
        return

    if result.success:
        await audit.record(
            ActivityType.BOOKING_EMAIL_SENT,
            f"Booking email workflow triggered for {booking.customer_name}",
            booking_id=booking.booking_id,
            metadata={"automationResponse": result.data, "status": result.status},
            severity=ActivitySeverity.SUCCESS,
        )
    else:
        await audit.record(
            ActivityType.BOOKING_EMAIL_FAILED,
            f"Booking email workflow not triggered for {booking.customer_name}",
            booking_id=booking.booking_id,
            metadata={"error": result.error},
            severity=ActivitySeverity.WARNING,
        )


async def _send_webhook(
    booking: Booking,
    brand,
    fallback_email: str | None,
    *,
    automation: AutomationClient,
    audit: ActivityRecorder,
) -> None:
    try:
        result = await automation.send_booking_webhook(booking, brand, fallback_email=fallback_email)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "booking_webhook_failed",
            extra={"extra": {"booking_id": booking.booking_id, "reason": type(exc).__name__}},
        )
        await audit.record(
            ActivityType.BOOKING_WEBHOOK_FAILED,
            f"Booking webhook error for {booking.customer_name}",
            booking_id=booking.booking_id,
            metadata={"error": type(exc).__name__},
            severity=ActivitySeverity.ERROR,
        )
        return

    await audit.record(
        ActivityType.BOOKING_WEBHOOK_SENT if result.success else ActivityType.BOOKING_WEBHOOK_FAILED,
        f"Booking webhook {'sent' if result.success else 'failed'} for {booking.customer_name}",
        booking_id=booking.booking_id,
        metadata={"status": result.status} if result.success else {"error": result.error},
        severity=ActivitySeverity.SUCCESS if result.success else ActivitySeverity.WARNING,
    )


async def run_status_updated(
    booking: Booking,
    old_status: str,
    *,
    dispatcher: NotificationDispatcher,
    broadcaster: EventBroadcaster | None = None,
) -> None:
    try:
        await dispatcher.dispatch_status_update(booking, old_status)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "status_notification_failed",
            extra={"extra": {"booking_id": booking.booking_id, "reason": type(exc).__name__}},
        )
    if broadcaster is not None:
        await _emit(
            broadcaster,
            EVENT_BOOKING_UPDATED,
            {
                "bookingId": booking.booking_id,
                "customerName": booking.customer_name,
                "brand": booking.brand,
                "model": booking.model,
                "status": booking.status,
                "oldStatus": old_status,
                "assignedTo": booking.assigned_to,
                "updatedAt": booking.updated_at,
            },
        )


async def _emit(broadcaster: EventBroadcaster, event: str, data: dict) -> None:
    try:
        await broadcaster.emit(event, data)
    except Exception as exc:  # noqa: BLE001
        logger.warning("realtime_emit_failed", extra={"extra": {"event": event, "reason": type(exc).__name__}})
