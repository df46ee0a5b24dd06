from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from servicedesk.domain.activity import ActivityRecorder, ActivitySeverity, ActivityType
from servicedesk.domain.brands.channels import CHANNEL_EMAIL, CHANNEL_WHATSAPP, effective_channels, ordered
from servicedesk.domain.notifications import templates
from servicedesk.infra.email import BOOKING_REFERENCE_HEADER
from servicedesk.infra.metrics import metrics

logger = logging.getLogger(__name__)

AUDIENCE_CUSTOMER = "customer"
AUDIENCE_BRAND = "brand"


@dataclass(frozen=True)
class NotificationAttempt:
    channel: str
    audience: str
    recipient: str | None
    delivered: bool
    error: str | None = None


class NotificationDispatcher:
    """Fans a booking out to the customer and the brand over every channel.

    Each attempt is independent and produces exactly one activity event.
    Nothing is retried and nothing raises past :meth:`dispatch_booking_created`.
    """

    def __init__(self, email_adapter, whatsapp_adapter, audit: ActivityRecorder) -> None:
        self.email_adapter = email_adapter
        self.whatsapp_adapter = whatsapp_adapter
        self.audit = audit

    async def dispatch_booking_created(self, booking, brand) -> list[NotificationAttempt]:
        customer_attempts, brand_attempts = await asyncio.gather(
            self._notify_customer(booking),
            self._notify_brand(booking, brand),
        )
        return [*customer_attempts, *brand_attempts]

    async def dispatch_status_update(self, booking, old_status: str) -> NotificationAttempt | None:
        if not booking.contact_number:
            return None
        body = templates.customer_whatsapp_status_update(booking, old_status)
        attempt = await self._attempt(
            CHANNEL_WHATSAPP,
            AUDIENCE_CUSTOMER,
            booking.contact_number,
            lambda: self._send_whatsapp(booking.contact_number, body),
        )
        await self._record_attempt(booking, attempt, brand_name=None)
        return attempt

    async def _notify_customer(self, booking) -> list[NotificationAttempt]:
        attempts: list[NotificationAttempt] = []
        if booking.contact_number:
            body = templates.customer_whatsapp_confirmation(booking)
            attempts.append(
                await self._attempt(
                    CHANNEL_WHATSAPP,
                    AUDIENCE_CUSTOMER,
                    booking.contact_number,
                    lambda: self._send_whatsapp(booking.contact_number, body),
                )
            )
        if booking.email:
            rendered = templates.customer_email_confirmation(booking)
            attempts.append(
                await self._attempt(
                    CHANNEL_EMAIL,
                    AUDIENCE_CUSTOMER,
                    booking.email,
                    lambda: self._send_email(booking, booking.email, rendered),
                )
            )

        for attempt in attempts:
            await self._record_attempt(booking, attempt, brand_name=None)

        if not any(attempt.delivered for attempt in attempts):
            reason = "no contact channel available" if not attempts else "all channels failed"
            await self.audit.record(
                ActivityType.NOTIFICATION_FAILED,
                f"No customer notifications sent for {booking.customer_name}",
                booking_id=booking.booking_id,
                metadata={
                    "audience": AUDIENCE_CUSTOMER,
                    "bookingId": booking.short_code,
                    "reason": reason,
                },
                severity=ActivitySeverity.WARNING,
            )
        return attempts

    async def _notify_brand(self, booking, brand) -> list[NotificationAttempt]:
        if brand is None:
            logger.warning("brand_config_missing", extra={"extra": {"brand": booking.brand}})
            await self.audit.record(
                ActivityType.NOTIFICATION_FAILED,
                f"No brand configuration found for {booking.brand}",
                booking_id=booking.booking_id,
                brand_name=booking.brand,
                metadata={"audience": AUDIENCE_BRAND, "bookingId": booking.short_code, "brand": booking.brand},
                severity=ActivitySeverity.WARNING,
            )
            return []

        selected = ordered(effective_channels(brand.preferred_communication, brand.communication_mode))
        if not selected:
            await self.audit.record(
                ActivityType.NOTIFICATION_FAILED,
                f"No valid communication method configured for brand {brand.name}",
                booking_id=booking.booking_id,
                brand_name=brand.name,
                metadata={"audience": AUDIENCE_BRAND, "bookingId": booking.short_code, "brand": brand.name},
                severity=ActivitySeverity.WARNING,
            )
            return []

        async def _deliver(channel: str) -> NotificationAttempt:
            if channel == CHANNEL_WHATSAPP:
                if not brand.whatsapp_number:
                    return NotificationAttempt(channel, AUDIENCE_BRAND, None, False, "address_missing")
                body = templates.brand_whatsapp_new_booking(booking)
                return await self._attempt(
                    channel,
                    AUDIENCE_BRAND,
                    brand.whatsapp_number,
                    lambda: self._send_whatsapp(brand.whatsapp_number, body),
                )
            if not brand.contact_email:
                return NotificationAttempt(channel, AUDIENCE_BRAND, None, False, "address_missing")
            rendered = templates.brand_email_new_booking(booking)
            return await self._attempt(
                channel,
                AUDIENCE_BRAND,
                brand.contact_email,
                lambda: self._send_email(booking, brand.contact_email, rendered),
            )

        attempts = list(await asyncio.gather(*(_deliver(channel) for channel in selected)))
        for attempt in attempts:
            await self._record_attempt(booking, attempt, brand_name=brand.name)
        return attempts

    async def _send_email(self, booking, recipient: str, rendered: templates.RenderedEmail) -> bool:
        return await self.email_adapter.send_email(
            recipient,
            rendered.subject,
            rendered.body,
            headers={BOOKING_REFERENCE_HEADER: booking.short_code},
        )

    async def _send_whatsapp(self, to_number: str, body: str) -> tuple[bool, str | None]:
        result = await self.whatsapp_adapter.send_whatsapp(to_number=to_number, body=body)
        return result.delivered, result.error_code

    async def _attempt(
        self,
        channel: str,
        audience: str,
        recipient: str,
        send: Callable[[], Awaitable[Any]],
    ) -> NotificationAttempt:
        try:
            outcome = await send()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "notification_send_failed",
                extra={
                    "extra": {
                        "channel": channel,
                        "audience": audience,
                        "recipient": recipient,
                        "reason": type(exc).__name__,
                    }
                },
            )
            return NotificationAttempt(channel, audience, recipient, False, str(exc) or type(exc).__name__)

        if isinstance(outcome, tuple):
            delivered, error = outcome
        else:
            delivered, error = bool(outcome), None
        if not delivered and error is None:
            error = f"{channel}_not_delivered"
        return NotificationAttempt(channel, audience, recipient, delivered, error)

    async def _record_attempt(self, booking, attempt: NotificationAttempt, *, brand_name: str | None) -> None:
        metrics.record_notification(attempt.channel, attempt.audience, "sent" if attempt.delivered else "failed")
        label = "WhatsApp" if attempt.channel == CHANNEL_WHATSAPP else "Email"
        target = f"brand {brand_name}" if attempt.audience == AUDIENCE_BRAND else booking.customer_name
        metadata: dict[str, Any] = {
            "channel": attempt.channel,
            "audience": attempt.audience,
            "recipient": attempt.recipient,
            "bookingId": booking.short_code,
        }
        if brand_name:
            metadata["brand"] = brand_name

        if attempt.delivered:
            event_type = (
                ActivityType.NOTIFICATION_SENT
                if attempt.audience == AUDIENCE_BRAND
                else ActivityType.MESSAGE_SENT
            )
            await self.audit.record(
                event_type,
                f"{label} notification sent to {target}",
                booking_id=booking.booking_id,
                brand_name=brand_name,
                metadata=metadata,
                severity=ActivitySeverity.SUCCESS,
            )
            return

        metadata["error"] = attempt.error
        missing_address = attempt.error == "address_missing"
        message = (
            f"{label} selected for {target} but no address is configured"
            if missing_address
            else f"{label} notification failed for {target}: {attempt.error}"
        )
        await self.audit.record(
            ActivityType.NOTIFICATION_FAILED,
            message,
            booking_id=booking.booking_id,
            brand_name=brand_name,
            metadata=metadata,
            severity=ActivitySeverity.WARNING if missing_address else ActivitySeverity.ERROR,
        )
