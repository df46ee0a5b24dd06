import json
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.dependencies import get_services, require_privileged
from servicedesk.domain.email_logs import service as email_service
from servicedesk.domain.email_logs.schemas import (
    EmailHookData,
    EmailHookResponse,
    EmailLogPage,
    EmailLogResponse,
    EmailStatsResponse,
)
from servicedesk.domain.errors import ValidationFailedError
from servicedesk.domain.users.identity import Requester
from servicedesk.infra.db import get_db_session
from servicedesk.services import AppServices

router = APIRouter(prefix="/api/email-hook")
logger = logging.getLogger(__name__)


@router.post("", response_model=EmailHookResponse)
async def receive_email_hook(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    services: AppServices = Depends(get_services),
) -> EmailHookResponse:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationFailedError(detail="Invalid payload: body must be JSON") from exc

    outcome = await email_service.ingest_inbound_email(
        session,
        payload,
        audit=services.audit,
        broadcaster=services.broadcaster,
        push_adapter=services.push_adapter,
    )
    email = outcome.email
    return EmailHookResponse(
        data=EmailHookData(
            id=email.email_log_id,
            from_=email.from_address,
            subject=email.subject,
            replyText=email.reply_text or "",
            bookingId=email.booking_id,
            emailType=email.email_type,
            timestamp=email.timestamp,
        )
    )


@router.get("/logs", response_model=EmailLogPage)
async def get_email_logs(
    limit: int = Query(50, ge=1, le=200),
    page: int = Query(1, ge=1),
    from_filter: str | None = Query(None, alias="from"),
    reply_sent: bool | None = Query(None, alias="replySent"),
    booking_id: str | None = Query(None, alias="bookingId"),
    _requester: Requester = Depends(require_privileged),
    session: AsyncSession = Depends(get_db_session),
) -> EmailLogPage:
    rows, total = await email_service.list_email_logs(
        session,
        from_filter=from_filter,
        reply_sent=reply_sent,
        booking_id=booking_id,
        limit=limit,
        page=page,
    )
    return EmailLogPage(
        data=[EmailLogResponse.model_validate(row) for row in rows],
        pagination={
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    )


@router.get("/stats", response_model=EmailStatsResponse)
async def get_email_stats(
    _requester: Requester = Depends(require_privileged),
    session: AsyncSession = Depends(get_db_session),
) -> EmailStatsResponse:
    return EmailStatsResponse(stats=await email_service.email_stats(session))
