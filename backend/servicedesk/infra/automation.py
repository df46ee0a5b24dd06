"""Outbound calls to the workflow engine and the generic booking webhook.

Both calls share the application's ``httpx.AsyncClient`` and never raise:
every failure is folded into an :class:`AutomationResult` so callers can
audit it and move on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from servicedesk.domain.bookings.statuses import (
    BOOKING_STATUS_PENDING,
    SERVICE_TYPE_COMPLAINT,
    SERVICE_TYPE_INSTALLATION,
)
from servicedesk.domain.brands.channels import CHANNEL_EMAIL, CHANNEL_WHATSAPP, effective_channels
from servicedesk.infra.metrics import metrics
from servicedesk.settings import settings

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class AutomationResult:
    success: bool
    status: int | None = None
    data: Any = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "status": self.status, "data": self.data}
        return {"success": False, "error": self.error}


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def build_automation_payload(booking, brand) -> dict[str, Any]:
    return {
        "bookingId": booking.short_code or booking.booking_id,
        "customerName": booking.customer_name,
        "customerEmail": booking.email or NOT_AVAILABLE,
        "customerPhone": booking.contact_number,
        "customerAddress": booking.address,
        "invoiceImage": booking.invoice_image or "",
        "brand": booking.brand,
        "model": booking.model,
        "invoiceNumber": booking.invoice_number or NOT_AVAILABLE,
        "preferredDateTime": _isoformat(booking.preferred_datetime) or NOT_AVAILABLE,
        "companyEmail": brand.contact_email,
        "companyName": brand.name,
        "whatsappNumber": brand.whatsapp_number or NOT_AVAILABLE,
        "status": booking.status,
        "createdAt": _isoformat(booking.created_at),
    }


def _problem_description(booking) -> str:
    description = booking.problem_description or ""
    if booking.service_type == SERVICE_TYPE_COMPLAINT and description:
        return f"Problem: {description}"
    return description


def build_booking_details(booking, *, fallback_email: str | None = None) -> dict[str, Any]:
    return {
        "_id": booking.booking_id,
        "bookingId": booking.short_code or booking.booking_id,
        "customerName": booking.customer_name or "",
        "email": booking.email or fallback_email or "",
        "contactNumber": booking.contact_number or "",
        "alternateContactNumber": booking.alternate_contact_number or "",
        "categoryName": booking.category_name or "",
        "address": booking.address or "",
        "landmark": booking.landmark or "",
        "serialNumber": booking.serial_number or "",
        "city": booking.city or "",
        "state": booking.state or "",
        "pinCode": booking.pin_code or "",
        "pincode": booking.pin_code or "",
        "serviceType": booking.service_type or SERVICE_TYPE_INSTALLATION,
        "problemDescription": _problem_description(booking),
        "dateOfPurchase": booking.date_of_purchase or "",
        "brand": booking.brand or "",
        "model": booking.model or "",
        "invoiceNumber": booking.invoice_number or "",
        "invoiceImage": booking.invoice_image or "",
        "preferredDateTime": _isoformat(booking.preferred_datetime),
        "createdAt": _isoformat(booking.created_at),
    }


def build_webhook_payload(booking, brand, *, fallback_email: str | None = None) -> dict[str, Any]:
    if brand is not None:
        channels = effective_channels(brand.preferred_communication, brand.communication_mode)
    else:
        channels = frozenset()
    company_email = (brand.contact_email if brand is not None else None) or settings.email_from or ""
    company_whatsapp = (brand.whatsapp_number if brand is not None else None) or settings.twilio_whatsapp_from or ""
    return {
        "body": {
            "bookingDetails": build_booking_details(booking, fallback_email=fallback_email),
            "companyEmail": company_email,
            "companyWhatsapp": company_whatsapp,
            "companyPreference": {
                "email": CHANNEL_EMAIL in channels,
                "whatsapp": CHANNEL_WHATSAPP in channels,
            },
        }
    }


class AutomationClient:
    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self.http_client = http_client

    async def trigger_booking_email(self, booking, brand) -> AutomationResult:
        """Ask the workflow engine to email the brand about a new booking.

        Only Pending bookings whose brand has a contact email are sent.
        """
        if booking.status != BOOKING_STATUS_PENDING:
            logger.info(
                "automation_trigger_skipped",
                extra={"extra": {"booking_id": booking.booking_id, "status": booking.status}},
            )
            return AutomationResult(success=False, error="status_not_pending")
        if brand is None:
            logger.warning("automation_brand_missing", extra={"extra": {"brand": booking.brand}})
            return AutomationResult(success=False, error="brand_not_found")
        if not brand.contact_email:
            logger.warning("automation_brand_email_missing", extra={"extra": {"brand": brand.name}})
            return AutomationResult(success=False, error="brand_contact_email_missing")
        url = settings.automation_webhook_url
        if not url:
            return AutomationResult(success=False, error="automation_not_configured")
        return await self._post("automation", url, build_automation_payload(booking, brand))

    async def send_booking_webhook(
        self, booking, brand, *, fallback_email: str | None = None
    ) -> AutomationResult:
        url = settings.booking_webhook_url
        if not url:
            logger.info("booking_webhook_skipped", extra={"extra": {"booking_id": booking.booking_id}})
            metrics.record_automation_call("booking_webhook", "skipped")
            return AutomationResult(success=False, error="booking_webhook_not_configured")
        payload = build_webhook_payload(booking, brand, fallback_email=fallback_email)
        return await self._post("booking_webhook", url, payload)

    async def _post(self, target: str, url: str, payload: dict[str, Any]) -> AutomationResult:
        client = self.http_client or httpx.AsyncClient()
        close_client = self.http_client is None
        try:
            response = await client.post(
                url,
                json=payload,
                timeout=settings.outbound_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "automation_request_failed",
                extra={"extra": {"target": target, "reason": type(exc).__name__}},
            )
            metrics.record_automation_call(target, "error")
            return AutomationResult(success=False, error=str(exc) or type(exc).__name__)
        finally:
            if close_client:
                await client.aclose()

        if response.status_code >= 400:
            logger.warning(
                "automation_request_error",
                extra={"extra": {"target": target, "status_code": response.status_code}},
            )
            metrics.record_automation_call(target, "error")
            return AutomationResult(
                success=False,
                status=response.status_code,
                error=f"{target}_status_{response.status_code}",
            )

        try:
            data = response.json()
        except ValueError:
            data = response.text
        metrics.record_automation_call(target, "sent")
        return AutomationResult(success=True, status=response.status_code, data=data)
