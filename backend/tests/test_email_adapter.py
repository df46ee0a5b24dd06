import asyncio
import json

import httpx
import pytest

from servicedesk.domain.errors import DownstreamError
from servicedesk.infra.email import (
    BOOKING_REFERENCE_HEADER,
    EmailAdapter,
    NoopEmailAdapter,
    OutgoingEmail,
    SmtpTransport,
    resolve_email_adapter,
)
from servicedesk.settings import settings


@pytest.fixture()
def sendgrid_mode(monkeypatch):
    monkeypatch.setattr(settings, "email_mode", "sendgrid")
    monkeypatch.setattr(settings, "sendgrid_api_key", "sg-key")
    monkeypatch.setattr(settings, "email_from", "desk@kapoor.example.com")
    monkeypatch.setattr(settings, "email_from_name", "Kapoor & Sons")


def test_sendgrid_payload_carries_sender_and_booking_reference(sendgrid_mode):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.headers["Authorization"], json.loads(request.content)))
        return httpx.Response(202)

    adapter = EmailAdapter(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    delivered = asyncio.run(
        adapter.send_email(
            "asha@example.com",
            "Booking Confirmation - A3K9P2",
            "Thanks",
            headers={BOOKING_REFERENCE_HEADER: "A3K9P2"},
        )
    )

    assert delivered is True
    auth, payload = seen[0]
    assert auth == "Bearer sg-key"
    assert payload["from"] == {"email": "desk@kapoor.example.com", "name": "Kapoor & Sons"}
    assert payload["personalizations"] == [{"to": [{"email": "asha@example.com"}]}]
    assert payload["headers"] == {BOOKING_REFERENCE_HEADER: "A3K9P2"}


def test_sendgrid_rejection_raises_downstream_error(sendgrid_mode):
    adapter = EmailAdapter(httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(401))))

    with pytest.raises(DownstreamError) as excinfo:
        asyncio.run(adapter.send_email("asha@example.com", "Subject", "Body"))

    assert excinfo.value.reason == "sendgrid_status_401"


def test_missing_sendgrid_key_is_reported(sendgrid_mode, monkeypatch):
    monkeypatch.setattr(settings, "sendgrid_api_key", None)
    adapter = EmailAdapter(httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(202))))

    with pytest.raises(DownstreamError) as excinfo:
        asyncio.run(adapter.send_email("asha@example.com", "Subject", "Body"))

    assert excinfo.value.reason == "sendgrid_not_configured"


def test_blank_recipient_is_skipped(sendgrid_mode):
    calls = []
    adapter = EmailAdapter(
        httpx.AsyncClient(transport=httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(202)))
    )

    assert asyncio.run(adapter.send_email("", "Subject", "Body")) is False
    assert calls == []


def test_smtp_message_formats_sender(monkeypatch):
    monkeypatch.setattr(settings, "email_from", "desk@kapoor.example.com")
    monkeypatch.setattr(settings, "email_from_name", "Kapoor Desk")

    mime = SmtpTransport().build_message(
        OutgoingEmail("dealer@acme.example.com", "New booking", "Body", {BOOKING_REFERENCE_HEADER: "Q7W8E9"})
    )

    assert mime["From"] == "Kapoor Desk <desk@kapoor.example.com>"
    assert mime["To"] == "dealer@acme.example.com"
    assert mime[BOOKING_REFERENCE_HEADER] == "Q7W8E9"


def test_testing_mode_resolves_noop_adapter():
    assert isinstance(resolve_email_adapter(settings), NoopEmailAdapter)
