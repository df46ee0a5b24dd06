"""Links an inbound email to the booking it is about.

Strategies run in order and the first hit wins. Each one is an independent
``async (session, message) -> booking_id | None`` callable, and a strategy
that raises is logged and treated as a miss.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.bookings.db_models import Booking
from servicedesk.domain.bookings.service import find_booking_by_token
from servicedesk.domain.email_logs.db_models import EmailMessage
from servicedesk.infra.metrics import metrics
from servicedesk.settings import settings

logger = logging.getLogger(__name__)

BOOKING_REFERENCE_RE = re.compile(
    r"#([a-f0-9]{24})|#([A-Z0-9]{6})|booking[:\s]+([a-f0-9]{24})|booking[:\s]+([A-Z0-9]{6})",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class InboundEmail:
    from_address: str
    subject: str
    to_address: str | None = None
    body: str | None = None
    booking_reference: str | None = None
    message_id: str | None = None
    in_reply_to: str | None = None
    references: str | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True)
class CorrelationResult:
    booking_id: str | None
    strategy: str | None = None

    @property
    def resolved(self) -> bool:
        return self.booking_id is not None


Strategy = Callable[[AsyncSession, InboundEmail], Awaitable[str | None]]


def extract_booking_token(text: str | None) -> str | None:
    if not text:
        return None
    match = BOOKING_REFERENCE_RE.search(text)
    if match is None:
        return None
    return next(group for group in match.groups() if group)


async def _validated(session: AsyncSession, token: str | None) -> str | None:
    if not token:
        return None
    booking = await find_booking_by_token(session, token)
    return booking.booking_id if booking is not None else None


async def explicit_reference(session: AsyncSession, message: InboundEmail) -> str | None:
    return await _validated(session, message.booking_reference)


async def thread_reply(session: AsyncSession, message: InboundEmail) -> str | None:
    if not message.in_reply_to:
        return None
    stmt = (
        select(EmailMessage.booking_id)
        .where(
            EmailMessage.message_id == message.in_reply_to,
            EmailMessage.booking_id.is_not(None),
        )
        .order_by(EmailMessage.timestamp.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def subject_pattern(session: AsyncSession, message: InboundEmail) -> str | None:
    return await _validated(session, extract_booking_token(message.subject))


async def body_pattern(session: AsyncSession, message: InboundEmail) -> str | None:
    return await _validated(session, extract_booking_token(message.body))


async def sender_recency(
    session: AsyncSession,
    message: InboundEmail,
    *,
    now: datetime | None = None,
) -> str | None:
    sender = message.from_address.strip()
    if not sender:
        return None
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=settings.correlation_window_days)
    stmt = (
        select(Booking.booking_id)
        .where(Booking.email == sender, Booking.created_at >= cutoff)
        .order_by(Booking.created_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("explicit_reference", explicit_reference),
    ("thread_reply", thread_reply),
    ("subject_pattern", subject_pattern),
    ("body_pattern", body_pattern),
    ("sender_recency", sender_recency),
)


async def resolve_booking(
    session: AsyncSession,
    message: InboundEmail,
    *,
    strategies: tuple[tuple[str, Strategy], ...] = STRATEGIES,
) -> CorrelationResult:
    for name, strategy in strategies:
        try:
            booking_id = await strategy(session, message)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "correlation_step_failed",
                extra={"extra": {"strategy": name, "reason": type(exc).__name__}},
            )
            continue
        if booking_id:
            metrics.record_correlation(name)
            logger.info(
                "correlation_resolved",
                extra={"extra": {"strategy": name, "booking_id": booking_id}},
            )
            return CorrelationResult(booking_id=booking_id, strategy=name)
    metrics.record_correlation(None)
    logger.info("correlation_unresolved", extra={"extra": {"from": message.from_address}})
    return CorrelationResult(booking_id=None)
