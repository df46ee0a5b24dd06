import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr

import anyio
import httpx

from servicedesk.domain.errors import DownstreamError
from servicedesk.settings import settings

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
BOOKING_REFERENCE_HEADER = "X-Booking-Reference"


@dataclass(frozen=True)
class OutgoingEmail:
    recipient: str
    subject: str
    body: str
    headers: dict[str, str] = field(default_factory=dict)


def _sender() -> tuple[str | None, str | None]:
    return settings.email_sender, settings.email_from_name


class SendGridTransport:
    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self.http_client = http_client

    def build_payload(self, message: OutgoingEmail) -> dict:
        from_email, from_name = _sender()
        sender: dict[str, str] = {"email": from_email or ""}
        if from_name:
            sender["name"] = from_name
        payload = {
            "personalizations": [{"to": [{"email": message.recipient}]}],
            "from": sender,
            "subject": message.subject,
            "content": [{"type": "text/plain", "value": message.body}],
        }
        if message.headers:
            payload["headers"] = dict(message.headers)
        return payload

    async def deliver(self, message: OutgoingEmail) -> None:
        if not settings.sendgrid_api_key or not settings.email_sender:
            raise DownstreamError("email", "sendgrid_not_configured")
        client = self.http_client or httpx.AsyncClient()
        try:
            response = await client.post(
                SENDGRID_URL,
                headers={"Authorization": f"Bearer {settings.sendgrid_api_key}"},
                json=self.build_payload(message),
                timeout=settings.outbound_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise DownstreamError("email", type(exc).__name__) from exc
        finally:
            if self.http_client is None:
                await client.aclose()
        if response.status_code >= 400:
            raise DownstreamError("email", f"sendgrid_status_{response.status_code}")


class SmtpTransport:
    def build_message(self, message: OutgoingEmail) -> EmailMessage:
        from_email, from_name = _sender()
        mime = EmailMessage()
        mime["From"] = formataddr((from_name, from_email)) if from_name else from_email
        mime["To"] = message.recipient
        mime["Subject"] = message.subject
        for name, value in message.headers.items():
            mime[name] = value
        mime.set_content(message.body)
        return mime

    async def deliver(self, message: OutgoingEmail) -> None:
        if not settings.smtp_host or not settings.email_sender:
            raise DownstreamError("email", "smtp_not_configured")
        mime = self.build_message(message)
        host, port = settings.smtp_host, settings.smtp_port or 587
        credentials = (settings.smtp_username, settings.smtp_password)
        timeout = settings.outbound_timeout_seconds

        def _send_blocking() -> None:
            smtp_class = smtplib.SMTP if settings.smtp_use_tls else smtplib.SMTP_SSL
            with smtp_class(host, port, timeout=timeout) as smtp:
                if settings.smtp_use_tls:
                    smtp.starttls()
                if all(credentials):
                    smtp.login(*credentials)
                smtp.send_message(mime)

        try:
            await anyio.to_thread.run_sync(_send_blocking)
        except (smtplib.SMTPException, OSError) as exc:
            raise DownstreamError("email", type(exc).__name__) from exc


class NoopEmailAdapter:
    async def send_email(
        self, recipient: str, subject: str, body: str, *, headers: dict[str, str] | None = None
    ) -> bool:  # noqa: D401
        logger.info(
            "email_send_skipped",
            extra={"extra": {"recipient": recipient, "subject": subject, "mode": "noop"}},
        )
        return False


class EmailAdapter:
    """Booking email over SendGrid or SMTP.

    ``send_email`` returns ``False`` when delivery is skipped (mode off or no
    recipient) and raises :class:`DownstreamError` when the provider rejects
    or cannot be reached. There is no internal retry.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self.transports = {
            "sendgrid": SendGridTransport(http_client),
            "smtp": SmtpTransport(),
        }

    async def send_email(
        self, recipient: str, subject: str, body: str, *, headers: dict[str, str] | None = None
    ) -> bool:
        if settings.email_mode == "off" or not recipient:
            return False
        transport = self.transports.get(settings.email_mode)
        if transport is None:
            raise DownstreamError("email", "unsupported_email_mode")
        await transport.deliver(OutgoingEmail(recipient, subject, body, dict(headers or {})))
        logger.info("email_sent", extra={"extra": {"recipient": recipient, "mode": settings.email_mode}})
        return True


def resolve_email_adapter(app_settings, http_client: httpx.AsyncClient | None = None) -> EmailAdapter | NoopEmailAdapter:
    if app_settings.email_mode == "off" or getattr(app_settings, "testing", False):
        return NoopEmailAdapter()
    return EmailAdapter(http_client)
