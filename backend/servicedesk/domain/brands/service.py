from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.activity import ActivityRecorder, ActivitySeverity, ActivityType
from servicedesk.domain.brands import channels as brand_channels
from servicedesk.domain.brands.db_models import Brand
from servicedesk.domain.brands.schemas import BrandResponse, BrandSaveRequest
from servicedesk.domain.errors import ValidationFailedError

logger = logging.getLogger(__name__)


async def get_brand_by_name(session: AsyncSession, name: str, *, active_only: bool = True) -> Brand | None:
    stmt = select(Brand).where(Brand.name == name)
    if active_only:
        stmt = stmt.where(Brand.is_active.is_(True))
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def list_brands(session: AsyncSession, *, include_inactive: bool = False) -> list[Brand]:
    stmt = select(Brand)
    if not include_inactive:
        stmt = stmt.where(Brand.is_active.is_(True))
    result = await session.execute(stmt.order_by(Brand.name.asc()))
    return list(result.scalars().all())


def _resolve_preferred(request: BrandSaveRequest) -> list[str]:
    if request.preferred_communication:
        return brand_channels.ordered(request.preferred_communication)
    if request.communication_mode:
        return brand_channels.ordered(
            brand_channels.effective_channels(None, request.communication_mode)
        )
    return list(brand_channels.DEFAULT_PREFERRED)


def _validate_addresses(preferred: list[str], contact_email: str | None, whatsapp_number: str | None) -> None:
    errors: list[dict] = []
    if brand_channels.CHANNEL_WHATSAPP in preferred and not whatsapp_number:
        errors.append(
            {
                "field": "whatsapp_number",
                "message": "WhatsApp number is required when WhatsApp is selected as preferred communication",
            }
        )
    if brand_channels.CHANNEL_EMAIL in preferred and not contact_email:
        errors.append(
            {
                "field": "contact_email",
                "message": "Email address is required when Email is selected as preferred communication",
            }
        )
    if errors:
        raise ValidationFailedError(detail=errors[0]["message"], errors=errors)


async def save_brand(
    session: AsyncSession,
    request: BrandSaveRequest,
    *,
    audit: ActivityRecorder | None = None,
) -> tuple[Brand, bool]:
    """Create or update a brand by name.

    Every preferred channel must have its address populated, and the legacy
    ``communication_mode`` is rewritten to mirror the preferred list.
    """
    preferred = _resolve_preferred(request)
    contact_email = str(request.contact_email) if request.contact_email else None
    _validate_addresses(preferred, contact_email, request.whatsapp_number)

    brand = await get_brand_by_name(session, request.name, active_only=False)
    created = brand is None
    if brand is None:
        brand = Brand(name=request.name)
        session.add(brand)
    brand.contact_email = contact_email
    brand.whatsapp_number = request.whatsapp_number
    brand.preferred_communication = preferred
    brand.communication_mode = brand_channels.legacy_mode_for(preferred)
    brand.is_active = request.is_active
    await session.commit()
    await session.refresh(brand)

    logger.info(
        "brand_saved",
        extra={"extra": {"brand": brand.name, "created": created, "channels": preferred}},
    )
    if audit is not None:
        await audit.record(
            ActivityType.BRAND_CREATED if created else ActivityType.BRAND_UPDATED,
            f"Brand {'created' if created else 'updated'}: {brand.name}",
            brand_name=brand.name,
            metadata={
                "preferredCommunication": preferred,
                "communicationMode": brand.communication_mode,
            },
            severity=ActivitySeverity.SUCCESS,
        )
    return brand, created


def brand_to_response(brand: Brand) -> BrandResponse:
    methods = brand_channels.ordered(
        brand_channels.effective_channels(brand.preferred_communication, brand.communication_mode)
    )
    return BrandResponse(
        brand_id=brand.brand_id,
        name=brand.name,
        contact_email=brand.contact_email,
        whatsapp_number=brand.whatsapp_number,
        preferred_communication=list(brand.preferred_communication or []),
        communication_mode=brand.communication_mode,
        communication_methods=methods,
        is_active=brand.is_active,
        created_at=brand.created_at,
    )
