import asyncio

from servicedesk.domain.activity import ActivityRecorder
from servicedesk.domain.notifications.dispatcher import AUDIENCE_BRAND, AUDIENCE_CUSTOMER, NotificationDispatcher
from tests.conftest import RecordingEmailAdapter, RecordingWhatsAppAdapter
from tests.factories import activity_events, make_booking, make_brand


def _dispatcher(async_session_maker, *, email=None, whatsapp=None) -> NotificationDispatcher:
    return NotificationDispatcher(
        email or RecordingEmailAdapter(),
        whatsapp or RecordingWhatsAppAdapter(),
        ActivityRecorder(async_session_maker),
    )


def _brand_events(events):
    return [event for event in events if (event.metadata_json or {}).get("audience") == AUDIENCE_BRAND]


def test_brand_with_both_channels_gets_one_event_per_channel(async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker))
    brand = asyncio.run(
        make_brand(
            async_session_maker,
            contact_email="dealer@acme.test",
            whatsapp_number="+14150000000",
            preferred=["whatsapp", "email"],
            mode="both",
        )
    )
    whatsapp = RecordingWhatsAppAdapter(fail_for={"+14150000000"})
    dispatcher = _dispatcher(async_session_maker, whatsapp=whatsapp)

    attempts = asyncio.run(dispatcher.dispatch_booking_created(booking, brand))

    brand_attempts = [attempt for attempt in attempts if attempt.audience == AUDIENCE_BRAND]
    assert {(attempt.channel, attempt.delivered) for attempt in brand_attempts} == {
        ("whatsapp", False),
        ("email", True),
    }
    events = _brand_events(asyncio.run(activity_events(async_session_maker)))
    assert len(events) == 2
    by_channel = {event.metadata_json["channel"]: event for event in events}
    assert by_channel["email"].type == "notification_sent"
    assert by_channel["email"].severity == "success"
    assert by_channel["whatsapp"].type == "notification_failed"
    assert by_channel["whatsapp"].metadata_json["error"] == "twilio_status_400"
    assert all(event.brand_name == "Acme" for event in events)


def test_email_failure_does_not_block_other_channels(async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker, email="asha@example.com"))
    brand = asyncio.run(make_brand(async_session_maker, contact_email="dealer@acme.test"))
    email = RecordingEmailAdapter(fail_for={"asha@example.com"})
    whatsapp = RecordingWhatsAppAdapter()
    dispatcher = _dispatcher(async_session_maker, email=email, whatsapp=whatsapp)

    asyncio.run(dispatcher.dispatch_booking_created(booking, brand))

    assert [recipient for recipient, _, _ in email.sent] == ["dealer@acme.test"]
    assert [number for number, _ in whatsapp.sent] == [booking.contact_number]
    failed = asyncio.run(activity_events(async_session_maker, event_type="notification_failed"))
    assert [event.metadata_json["channel"] for event in failed] == ["email"]
    assert failed[0].metadata_json["audience"] == AUDIENCE_CUSTOMER


def test_customer_warning_when_nothing_delivered(async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker, email=None, contact_number="+919800000009"))
    brand = asyncio.run(make_brand(async_session_maker))
    whatsapp = RecordingWhatsAppAdapter(fail_for={"+919800000009"})
    dispatcher = _dispatcher(async_session_maker, whatsapp=whatsapp)

    asyncio.run(dispatcher.dispatch_booking_created(booking, brand))

    events = asyncio.run(activity_events(async_session_maker, event_type="notification_failed"))
    warnings = [event for event in events if event.message.startswith("No customer notifications sent")]
    assert len(warnings) == 1
    assert warnings[0].severity == "warning"
    assert warnings[0].message == "No customer notifications sent for Asha Verma"


def test_missing_brand_records_single_warning(async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker, brand="Unknown Co"))
    dispatcher = _dispatcher(async_session_maker)

    attempts = asyncio.run(dispatcher.dispatch_booking_created(booking, None))

    assert all(attempt.audience == AUDIENCE_CUSTOMER for attempt in attempts)
    events = _brand_events(asyncio.run(activity_events(async_session_maker)))
    assert len(events) == 1
    assert events[0].message == "No brand configuration found for Unknown Co"
    assert events[0].severity == "warning"


def test_selected_channel_without_address_is_a_warning(async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker))
    brand = asyncio.run(
        make_brand(async_session_maker, contact_email="dealer@acme.test", preferred=["whatsapp", "email"])
    )
    email = RecordingEmailAdapter()
    dispatcher = _dispatcher(async_session_maker, email=email)

    asyncio.run(dispatcher.dispatch_booking_created(booking, brand))

    events = _brand_events(asyncio.run(activity_events(async_session_maker)))
    by_channel = {event.metadata_json["channel"]: event for event in events}
    assert by_channel["whatsapp"].type == "notification_failed"
    assert by_channel["whatsapp"].severity == "warning"
    assert by_channel["whatsapp"].metadata_json["error"] == "address_missing"
    assert by_channel["email"].type == "notification_sent"


def test_legacy_mode_used_when_preferred_list_is_empty(async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker))
    brand = asyncio.run(
        make_brand(
            async_session_maker,
            contact_email="dealer@acme.test",
            whatsapp_number="+14150000000",
            preferred=[],
            mode="whatsapp",
        )
    )
    email = RecordingEmailAdapter()
    whatsapp = RecordingWhatsAppAdapter()
    dispatcher = _dispatcher(async_session_maker, email=email, whatsapp=whatsapp)

    asyncio.run(dispatcher.dispatch_booking_created(booking, brand))

    assert "+14150000000" in [number for number, _ in whatsapp.sent]
    assert "dealer@acme.test" not in [recipient for recipient, _, _ in email.sent]
