from datetime import datetime, timezone

from sqlalchemy import select

from servicedesk.domain.activity.db_models import ActivityEvent
from servicedesk.domain.bookings.db_models import Booking
from servicedesk.domain.bookings.service import generate_short_code
from servicedesk.domain.brands.db_models import Brand
from servicedesk.domain.email_logs.db_models import EmailMessage
from servicedesk.domain.users.db_models import User


async def make_user(session_factory, *, email: str, role: str = "customer", push_token: str | None = None) -> str:
    async with session_factory() as session:
        user = User(name=email.split("@")[0], email=email, role=role, push_token=push_token)
        session.add(user)
        await session.commit()
        return user.user_id


async def make_brand(
    session_factory,
    *,
    name: str = "Acme",
    contact_email: str | None = "dealer@acme.test",
    whatsapp_number: str | None = None,
    preferred: list[str] | None = None,
    mode: str = "email",
    is_active: bool = True,
) -> Brand:
    async with session_factory() as session:
        brand = Brand(
            name=name,
            contact_email=contact_email,
            whatsapp_number=whatsapp_number,
            preferred_communication=preferred if preferred is not None else ["email"],
            communication_mode=mode,
            is_active=is_active,
        )
        session.add(brand)
        await session.commit()
        return brand


async def make_booking(
    session_factory,
    *,
    short_code: str | None = None,
    email: str | None = "customer@example.com",
    contact_number: str = "+919800000001",
    brand: str = "Acme",
    created_by: str | None = None,
    created_at: datetime | None = None,
    status: str = "Pending",
) -> Booking:
    async with session_factory() as session:
        booking = Booking(
            short_code=short_code or generate_short_code(),
            customer_name="Asha Verma",
            email=email,
            contact_number=contact_number,
            address="12 MG Road",
            city="Pune",
            state="MH",
            pin_code="411001",
            brand=brand,
            model="X200",
            status=status,
            created_by=created_by,
            created_at=created_at or datetime.now(timezone.utc),
            updates=[],
        )
        session.add(booking)
        await session.commit()
        return booking


async def make_email_log(
    session_factory,
    *,
    from_address: str,
    subject: str,
    message_id: str | None = None,
    booking_id: str | None = None,
) -> EmailMessage:
    async with session_factory() as session:
        email = EmailMessage(
            from_address=from_address,
            subject=subject,
            reply_text="",
            email_type="outgoing",
            reply_sent=True,
            message_id=message_id,
            booking_id=booking_id,
            timestamp=datetime.now(timezone.utc),
        )
        session.add(email)
        await session.commit()
        return email


async def activity_events(session_factory, *, event_type: str | None = None) -> list[ActivityEvent]:
    async with session_factory() as session:
        stmt = select(ActivityEvent).order_by(ActivityEvent.created_at.asc())
        if event_type:
            stmt = stmt.where(ActivityEvent.type == event_type)
        return list((await session.execute(stmt)).scalars().all())


async def email_logs(session_factory) -> list[EmailMessage]:
    async with session_factory() as session:
        return list((await session.execute(select(EmailMessage))).scalars().all())


async def fetch_booking(session_factory, booking_id: str) -> Booking | None:
    async with session_factory() as session:
        return await session.get(Booking, booking_id)
