from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.dependencies import require_privileged
from servicedesk.domain.activity import list_activity
from servicedesk.domain.activity.schemas import ActivityEventResponse
from servicedesk.domain.users.identity import Requester
from servicedesk.infra.db import get_db_session

router = APIRouter()


@router.get("/v1/activity", response_model=list[ActivityEventResponse])
async def get_activity(
    booking_id: str | None = Query(None, alias="bookingId"),
    event_type: str | None = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _requester: Requester = Depends(require_privileged),
    session: AsyncSession = Depends(get_db_session),
) -> list[ActivityEventResponse]:
    events = await list_activity(
        session, booking_id=booking_id, event_type=event_type, limit=limit, offset=offset
    )
    return [ActivityEventResponse.model_validate(event) for event in events]
