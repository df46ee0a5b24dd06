import asyncio

import pytest

from servicedesk.domain.email_logs.correlation import (
    STRATEGIES,
    InboundEmail,
    extract_booking_token,
    resolve_booking,
)
from tests.factories import make_booking


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Re: Booking #A3K9P2", "A3K9P2"),
        ("booking: q7w8e9 follow-up", "q7w8e9"),
        ("About #65f0c0ffee0000000000abcd", "65f0c0ffee0000000000abcd"),
        ("booking 65f0c0ffee0000000000abcd", "65f0c0ffee0000000000abcd"),
        ("Invoice attached", None),
        (None, None),
    ],
)
def test_extract_booking_token(text, expected):
    assert extract_booking_token(text) == expected


def test_failing_strategy_is_skipped(async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker, short_code="K2L3M4"))

    async def broken(session, message):
        raise RuntimeError("lookup failed")

    async def _resolve():
        async with async_session_maker() as session:
            return await resolve_booking(
                session,
                InboundEmail(from_address="dealer@acme.test", subject="Re: #K2L3M4"),
                strategies=(("broken", broken),) + STRATEGIES,
            )

    result = asyncio.run(_resolve())

    assert result.resolved
    assert result.booking_id == booking.booking_id
    assert result.strategy == "subject_pattern"


def test_unknown_reference_falls_through_to_unresolved(async_session_maker):
    async def _resolve():
        async with async_session_maker() as session:
            return await resolve_booking(
                session,
                InboundEmail(from_address="nobody@example.com", subject="Re: #ZZZZZZ", body="booking: YYYYYY"),
            )

    result = asyncio.run(_resolve())

    assert result.resolved is False
    assert result.strategy is None
