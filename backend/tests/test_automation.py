import asyncio
import json
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx

from servicedesk.infra.automation import (
    AutomationClient,
    build_automation_payload,
    build_webhook_payload,
)
from servicedesk.settings import settings


def _booking(**overrides):
    values = dict(
        booking_id="65f0c0ffee0000000000abcd",
        short_code="A3K9P2",
        customer_name="Asha Verma",
        email=None,
        contact_number="+919800000001",
        alternate_contact_number=None,
        address="12 MG Road",
        landmark=None,
        city="Pune",
        state="MH",
        pin_code="411001",
        service_type="Service Complaint",
        problem_description="Unit leaks water",
        date_of_purchase=None,
        category_name="Purifier",
        brand="Acme",
        model="X200",
        serial_number=None,
        invoice_number=None,
        invoice_image=None,
        preferred_datetime=None,
        status="Pending",
        created_at=datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _brand(**overrides):
    values = dict(
        name="Acme",
        contact_email="dealer@acme.test",
        whatsapp_number=None,
        preferred_communication=["whatsapp"],
        communication_mode="whatsapp",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _client(handler) -> AutomationClient:
    return AutomationClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_automation_payload_uses_placeholders_for_missing_fields():
    payload = build_automation_payload(_booking(), _brand())

    assert payload["bookingId"] == "A3K9P2"
    assert payload["customerEmail"] == "N/A"
    assert payload["invoiceNumber"] == "N/A"
    assert payload["preferredDateTime"] == "N/A"
    assert payload["whatsappNumber"] == "N/A"
    assert payload["companyEmail"] == "dealer@acme.test"
    assert payload["createdAt"] == "2026-03-01T09:30:00+00:00"


def test_webhook_payload_prefixes_complaints_and_uses_fallbacks():
    settings.email_from = "desk@kapoor.test"
    payload = build_webhook_payload(
        _booking(),
        _brand(contact_email=None),
        fallback_email="owner@example.com",
    )["body"]

    details = payload["bookingDetails"]
    assert details["_id"] == "65f0c0ffee0000000000abcd"
    assert details["email"] == "owner@example.com"
    assert details["problemDescription"] == "Problem: Unit leaks water"
    assert details["pincode"] == details["pinCode"] == "411001"
    assert payload["companyEmail"] == "desk@kapoor.test"
    assert payload["companyWhatsapp"] == settings.twilio_whatsapp_from
    assert payload["companyPreference"] == {"email": False, "whatsapp": True}


def test_webhook_payload_without_brand_disables_preferences():
    payload = build_webhook_payload(_booking(), None)["body"]

    assert payload["companyPreference"] == {"email": False, "whatsapp": False}


def test_trigger_skips_non_pending_bookings():
    calls = []
    client = _client(lambda request: calls.append(request) or httpx.Response(200))

    result = asyncio.run(client.trigger_booking_email(_booking(status="Scheduled"), _brand()))

    assert result.success is False
    assert result.error == "status_not_pending"
    assert calls == []


def test_trigger_requires_brand_contact_email():
    client = _client(lambda request: httpx.Response(200))

    missing_brand = asyncio.run(client.trigger_booking_email(_booking(), None))
    missing_email = asyncio.run(client.trigger_booking_email(_booking(), _brand(contact_email=None)))

    assert missing_brand.error == "brand_not_found"
    assert missing_email.error == "brand_contact_email_missing"


def test_trigger_posts_payload_and_returns_response_data():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"queued": True})

    result = asyncio.run(_client(handler).trigger_booking_email(_booking(), _brand()))

    assert result.success is True
    assert result.status == 200
    assert result.data == {"queued": True}
    assert seen[0]["companyName"] == "Acme"


def test_webhook_error_status_is_reported_not_raised():
    result = asyncio.run(
        _client(lambda request: httpx.Response(503)).send_booking_webhook(_booking(), _brand())
    )

    assert result.success is False
    assert result.status == 503
    assert result.error == "booking_webhook_status_503"
    assert result.as_dict() == {"success": False, "error": "booking_webhook_status_503"}


def test_webhook_transport_error_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = asyncio.run(_client(handler).send_booking_webhook(_booking(), _brand()))

    assert result.success is False
    assert result.error == "connection refused"


def test_webhook_skipped_when_not_configured():
    settings.booking_webhook_url = None
    calls = []

    result = asyncio.run(
        _client(lambda request: calls.append(request) or httpx.Response(200)).send_booking_webhook(
            _booking(), _brand()
        )
    )

    assert result.error == "booking_webhook_not_configured"
    assert calls == []
