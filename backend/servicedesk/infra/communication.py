from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from servicedesk.settings import settings

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


@dataclass(frozen=True)
class CommunicationResult:
    status: str
    provider_msg_id: str | None = None
    error_code: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == "sent"


def format_whatsapp_address(number: str) -> str:
    number = number.strip()
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


class NoopWhatsAppAdapter:
    async def send_whatsapp(self, *, to_number: str, body: str) -> CommunicationResult:  # noqa: D401
        del to_number, body
        logger.info("whatsapp_send_skipped", extra={"extra": {"mode": "noop"}})
        return CommunicationResult(status="failed", error_code="whatsapp_disabled")


class TwilioWhatsAppAdapter:
    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self.http_client = http_client

    async def send_whatsapp(self, *, to_number: str, body: str) -> CommunicationResult:
        if settings.whatsapp_mode != "twilio":
            logger.info("whatsapp_send_skipped", extra={"extra": {"mode": settings.whatsapp_mode}})
            return CommunicationResult(status="failed", error_code="whatsapp_disabled")
        if not _twilio_configured():
            logger.warning("whatsapp_send_not_configured")
            return CommunicationResult(status="failed", error_code="twilio_not_configured")
        payload = {
            "To": format_whatsapp_address(to_number),
            "From": format_whatsapp_address(settings.twilio_whatsapp_from),
            "Body": body,
        }
        return await self._post_twilio(_twilio_messages_url(), payload)

    async def _post_twilio(self, url: str, payload: dict[str, str]) -> CommunicationResult:
        client = self.http_client or httpx.AsyncClient()
        close_client = self.http_client is None
        try:
            response = await client.post(
                url,
                data=payload,
                auth=(settings.twilio_account_sid, settings.twilio_auth_token),
                timeout=settings.outbound_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.warning("twilio_request_failed", extra={"extra": {"reason": type(exc).__name__}})
            return CommunicationResult(status="failed", error_code="twilio_request_failed")
        finally:
            if close_client:
                await client.aclose()

        if response.status_code >= 400:
            logger.warning(
                "twilio_request_error",
                extra={"extra": {"status_code": response.status_code}},
            )
            return CommunicationResult(status="failed", error_code=f"twilio_status_{response.status_code}")

        provider_msg_id = None
        try:
            provider_msg_id = response.json().get("sid")
        except ValueError:
            logger.warning("twilio_response_parse_failed")
        return CommunicationResult(status="sent", provider_msg_id=provider_msg_id)


def resolve_whatsapp_adapter(
    app_settings, http_client: httpx.AsyncClient | None = None
) -> TwilioWhatsAppAdapter | NoopWhatsAppAdapter:
    if app_settings.whatsapp_mode != "twilio" or getattr(app_settings, "testing", False):
        return NoopWhatsAppAdapter()
    return TwilioWhatsAppAdapter(http_client)


def _twilio_configured() -> bool:
    return bool(settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_whatsapp_from)


def _twilio_messages_url() -> str:
    return f"https://api.twilio.com/2010-04-01/Accounts/{settings.twilio_account_sid}/Messages.json"
