import asyncio
import time

from servicedesk.infra.realtime import EVENT_EMAIL_REPLY_RECEIVED, EventBroadcaster
from tests.factories import make_booking


class _Listener:
    def __init__(self, fail: bool = False) -> None:
        self.frames: list[dict] = []
        self.fail = fail

    async def send_json(self, data) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.frames.append(data)


def test_emit_fans_out_and_drops_broken_listeners():
    broadcaster = EventBroadcaster()
    healthy = _Listener()
    broken = _Listener(fail=True)

    async def _run() -> tuple[int, int]:
        await broadcaster.connect(healthy)
        await broadcaster.connect(broken)
        delivered = await broadcaster.emit("bookingUpdated", {"bookingId": "abc", "status": "Scheduled"})
        return delivered, broadcaster.listener_count

    delivered, remaining = asyncio.run(_run())

    assert delivered == 1
    assert remaining == 1
    assert healthy.frames == [{"event": "bookingUpdated", "data": {"bookingId": "abc", "status": "Scheduled"}}]


def test_emit_without_listeners_is_a_no_op():
    assert asyncio.run(EventBroadcaster().emit("bookingCreated", {})) == 0


def _wait_for_listeners(client, expected: int) -> None:
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        if client.get("/readyz").json()["checks"]["realtime_listeners"] == expected:
            return
        time.sleep(0.02)
    raise AssertionError(f"expected {expected} realtime listeners")


def test_websocket_receives_email_reply_event(client, async_session_maker):
    booking = asyncio.run(make_booking(async_session_maker, short_code="Q7W8E9"))

    with client.websocket_connect("/v1/events") as websocket:
        _wait_for_listeners(client, 1)
        client.post(
            "/api/email-hook",
            json={"from": "dealer@acme.test", "subject": "Re: #Q7W8E9", "replyText": "Technician assigned"},
        )
        frame = websocket.receive_json()

    assert frame["event"] == EVENT_EMAIL_REPLY_RECEIVED
    assert frame["data"]["bookingId"] == booking.booking_id
    assert frame["data"]["replyText"] == "Technician assigned"
    _wait_for_listeners(client, 0)
