import json
import logging

from servicedesk.infra.logging import configure_logging, redact_pii
from servicedesk.main import app


def _remove_route(path: str) -> None:
    app.router.routes = [route for route in app.router.routes if getattr(route, "path", None) != path]


def test_logging_redacts_contact_details_and_tokens(capsys):
    configure_logging()
    logger = logging.getLogger("pii-test")

    logger.info(
        "notification_send_failed",
        extra={
            "authorization": "Bearer super-secret",
            "extra": {
                "recipient": "asha@example.com",
                "note": "sent to whatsapp:+919800000001 and dealer@acme.test",
                "url": "https://hooks.test/booking?token=abc123",
            },
        },
    )

    captured = capsys.readouterr()
    stream = (captured.out or captured.err).strip().splitlines()
    assert stream
    payload = json.loads(stream[-1])

    assert payload["authorization"] == "[REDACTED]"
    assert payload["recipient"] == "[REDACTED]"
    assert "asha@example.com" not in stream[-1]
    assert "+919800000001" not in payload["note"]
    assert "dealer@acme.test" not in payload["note"]
    assert "abc123" not in payload["url"]


def test_redact_pii_masks_push_tokens():
    redacted = redact_pii("push to ExponentPushToken[xyz-123] failed")

    assert "xyz-123" not in redacted
    assert "[REDACTED_TOKEN]" in redacted


def test_request_id_present_in_logs_and_response(client_no_raise, capsys):
    configure_logging()

    async def boom():  # pragma: no cover - executed via HTTP
        raise RuntimeError("boom")

    route_path = "/boom-log"
    app.router.add_api_route(route_path, boom, methods=["GET"])

    response = client_no_raise.get(route_path, headers={"X-Request-ID": "req-123"})

    assert response.status_code == 500
    assert response.json()["request_id"] == "req-123"
    captured = capsys.readouterr()
    combined_stream = (captured.out + captured.err).strip().splitlines()
    assert combined_stream
    unhandled_line = next(line for line in reversed(combined_stream) if "unhandled_exception" in line)
    log_payload = json.loads(unhandled_line)
    assert log_payload.get("request_id") == "req-123"
    _remove_route(route_path)
