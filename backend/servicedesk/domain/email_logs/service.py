from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.activity import ActivityRecorder, ActivitySeverity, ActivityType
from servicedesk.domain.bookings.db_models import Booking
from servicedesk.domain.email_logs.correlation import CorrelationResult, InboundEmail, resolve_booking
from servicedesk.domain.email_logs.db_models import (
    EMAIL_TYPE_INCOMING,
    EMAIL_TYPE_OUTGOING,
    EMAIL_TYPE_REPLY,
    EMAIL_TYPES,
    HEADER_VALUE_MAX_LENGTH,
    EmailMessage,
)
from servicedesk.domain.email_logs.schemas import EMAIL_SHAPE_RE, as_text, clean_value
from servicedesk.domain.errors import ValidationFailedError
from servicedesk.domain.notifications import templates
from servicedesk.domain.users.db_models import User
from servicedesk.infra.realtime import EVENT_EMAIL_REPLY_RECEIVED, EventBroadcaster

logger = logging.getLogger(__name__)

MAX_LOG_PAGE = 200


@dataclass(frozen=True)
class ParsedHook:
    message: InboundEmail
    reply_sent: bool


@dataclass(frozen=True)
class IngestOutcome:
    email: EmailMessage
    correlation: CorrelationResult
    booking: Booking | None


def _first_item(payload: Any) -> dict[str, Any]:
    if isinstance(payload, list):
        payload = payload[0] if payload else {}
    if not isinstance(payload, dict):
        raise ValidationFailedError(detail="Invalid payload: expected a JSON object")
    return payload


def parse_timestamp(value: Any, *, now: datetime | None = None) -> datetime:
    fallback = now or datetime.now(timezone.utc)
    if value is None:
        return fallback
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return fallback
    text = str(value).strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _strip(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def parse_hook_payload(payload: Any) -> ParsedHook:
    """Normalize a webhook body into an :class:`InboundEmail`.

    Raises :class:`ValidationFailedError` before anything is persisted when
    the sender or subject is missing, the sender is not email-shaped, or an
    identifying header is longer than its column.
    """
    data = _first_item(payload)
    sender = as_text(data.get("from"))
    subject = as_text(data.get("subject"))
    if not sender or not subject:
        raise ValidationFailedError(
            detail="Invalid payload: 'from' and 'subject' are required fields",
            errors=[
                {"field": name, "message": "required"}
                for name, value in (("from", sender), ("subject", subject))
                if not value
            ],
        )
    if not EMAIL_SHAPE_RE.match(sender):
        raise ValidationFailedError(
            detail="Invalid payload: 'from' must be a valid email address",
            errors=[{"field": "from", "message": "invalid email"}],
        )
    message = InboundEmail(
        from_address=sender.strip(),
        subject=subject.strip(),
        to_address=_strip(as_text(data.get("to"))),
        body=_strip(as_text(data.get("replyText"))),
        booking_reference=_strip(as_text(data.get("bookingId"))),
        message_id=_strip(as_text(data.get("messageId"))),
        in_reply_to=_strip(as_text(data.get("inReplyTo"))),
        references=_strip(as_text(data.get("references"))),
        timestamp=parse_timestamp(clean_value(data.get("timestamp"))),
    )
    oversized = [
        name
        for name, value in (
            ("from", message.from_address),
            ("messageId", message.message_id),
            ("inReplyTo", message.in_reply_to),
        )
        if value and len(value) > HEADER_VALUE_MAX_LENGTH
    ]
    if oversized:
        raise ValidationFailedError(
            detail=f"Invalid payload: header values are limited to {HEADER_VALUE_MAX_LENGTH} characters",
            errors=[{"field": name, "message": "too long"} for name in oversized],
        )
    return ParsedHook(message=message, reply_sent=data.get("replySent") is True)


def classify(reply_sent: bool, booking_id: str | None, body: str | None) -> str:
    if reply_sent:
        return EMAIL_TYPE_OUTGOING
    if booking_id and body:
        return EMAIL_TYPE_REPLY
    return EMAIL_TYPE_INCOMING


async def ingest_inbound_email(
    session: AsyncSession,
    payload: Any,
    *,
    audit: ActivityRecorder | None = None,
    broadcaster: EventBroadcaster | None = None,
    push_adapter=None,
) -> IngestOutcome:
    parsed = parse_hook_payload(payload)
    message = parsed.message
    correlation = await resolve_booking(session, message)
    booking = await session.get(Booking, correlation.booking_id) if correlation.booking_id else None
    email_type = classify(parsed.reply_sent, correlation.booking_id, message.body)

    email = EmailMessage(
        from_address=message.from_address,
        to_address=message.to_address,
        subject=message.subject,
        reply_text=message.body or "",
        booking_id=correlation.booking_id,
        reply_sent=parsed.reply_sent,
        email_type=email_type,
        timestamp=message.timestamp,
        message_id=message.message_id,
        in_reply_to=message.in_reply_to,
        references=message.references,
    )
    session.add(email)
    await session.commit()
    await session.refresh(email)

    logger.info(
        "email_hook_logged",
        extra={
            "extra": {
                "email_log_id": email.email_log_id,
                "email_type": email_type,
                "booking_id": correlation.booking_id,
                "strategy": correlation.strategy,
            }
        },
    )

    if audit is not None:
        await audit.record(
            ActivityType.EMAIL_RECEIVED,
            f"Email {email_type} received from {message.from_address}",
            booking_id=correlation.booking_id,
            metadata={
                "emailLogId": email.email_log_id,
                "emailType": email_type,
                "strategy": correlation.strategy,
            },
            severity=ActivitySeverity.INFO,
        )

    if email_type == EMAIL_TYPE_REPLY and booking is not None:
        await _announce_reply(session, email, booking, broadcaster=broadcaster, push_adapter=push_adapter)

    return IngestOutcome(email=email, correlation=correlation, booking=booking)


async def _announce_reply(
    session: AsyncSession,
    email: EmailMessage,
    booking: Booking,
    *,
    broadcaster: EventBroadcaster | None,
    push_adapter,
) -> None:
    if broadcaster is not None:
        try:
            await broadcaster.emit(
                EVENT_EMAIL_REPLY_RECEIVED,
                {
                    "emailLogId": email.email_log_id,
                    "bookingId": booking.booking_id,
                    "from": email.from_address,
                    "subject": email.subject,
                    "replyText": email.reply_text,
                    "timestamp": email.timestamp,
                },
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("realtime_emit_failed", extra={"extra": {"reason": type(exc).__name__}})

    if push_adapter is None or not booking.created_by:
        return
    try:
        creator = await session.get(User, booking.created_by)
        if creator is None or not creator.push_token:
            logger.info("push_token_missing", extra={"extra": {"booking_id": booking.booking_id}})
            return
        title, body = templates.reply_push_notice(booking, email.from_address)
        await push_adapter.send(
            creator.push_token,
            title,
            body,
            {"bookingId": booking.booking_id, "emailLogId": email.email_log_id, "type": "email_reply"},
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("push_notify_failed", extra={"extra": {"reason": type(exc).__name__}})


async def list_email_logs(
    session: AsyncSession,
    *,
    from_filter: str | None = None,
    reply_sent: bool | None = None,
    booking_id: str | None = None,
    limit: int = 50,
    page: int = 1,
) -> tuple[list[EmailMessage], int]:
    conditions = []
    if from_filter:
        conditions.append(func.lower(EmailMessage.from_address).contains(from_filter.lower()))
    if reply_sent is not None:
        conditions.append(EmailMessage.reply_sent.is_(reply_sent))
    if booking_id:
        conditions.append(EmailMessage.booking_id == booking_id)

    limit = max(1, min(limit, MAX_LOG_PAGE))
    page = max(1, page)
    stmt = (
        select(EmailMessage)
        .where(*conditions)
        .order_by(EmailMessage.timestamp.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    rows = list((await session.execute(stmt)).scalars().all())
    total = await session.scalar(select(func.count()).select_from(EmailMessage).where(*conditions))
    return rows, int(total or 0)


async def list_booking_emails(session: AsyncSession, booking_id: str) -> list[EmailMessage]:
    stmt = (
        select(EmailMessage)
        .where(EmailMessage.booking_id == booking_id)
        .order_by(EmailMessage.timestamp.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def email_stats(session: AsyncSession, *, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    total = await session.scalar(select(func.count()).select_from(EmailMessage))
    replies_sent = await session.scalar(
        select(func.count()).select_from(EmailMessage).where(EmailMessage.reply_sent.is_(True))
    )
    recent = await session.scalar(
        select(func.count())
        .select_from(EmailMessage)
        .where(EmailMessage.timestamp >= now - timedelta(hours=24))
    )
    type_rows = await session.execute(
        select(EmailMessage.email_type, func.count()).group_by(EmailMessage.email_type)
    )
    by_type = {email_type: 0 for email_type in EMAIL_TYPES}
    for email_type, count in type_rows.all():
        by_type[email_type] = int(count)
    return {
        "totalLogs": int(total or 0),
        "repliesSent": int(replies_sent or 0),
        "repliesPending": int(total or 0) - int(replies_sent or 0),
        "recentLogs24h": int(recent or 0),
        "emailTypes": by_type,
    }
