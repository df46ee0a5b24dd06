import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.dependencies import get_services, require_privileged, require_requester
from servicedesk.domain.activity import ActivitySeverity, ActivityType
from servicedesk.domain.bookings import service as booking_service
from servicedesk.domain.bookings import workflow
from servicedesk.domain.bookings.reschedule import RescheduleOutcome, can_reschedule, request_reschedule
from servicedesk.domain.bookings.schemas import (
    BookingCreateRequest,
    BookingResponse,
    BookingStatusUpdateRequest,
    RescheduleData,
    RescheduleRequest,
    RescheduleResponse,
)
from servicedesk.domain.email_logs.schemas import EmailLogResponse
from servicedesk.domain.email_logs.service import list_booking_emails
from servicedesk.domain.errors import PermissionDeniedError
from servicedesk.domain.users.identity import Requester
from servicedesk.infra.db import get_db_session
from servicedesk.services import AppServices
from servicedesk.shared.background import schedule_background

router = APIRouter()
logger = logging.getLogger(__name__)


def _to_reschedule_response(outcome: RescheduleOutcome) -> RescheduleResponse:
    return RescheduleResponse(
        success=True,
        message=outcome.message,
        data=RescheduleData(
            bookingId=outcome.booking.booking_id,
            lastRescheduleEmailAt=outcome.last_reschedule_email_at,
            rescheduleCount=outcome.reschedule_count,
            nextAvailableAt=outcome.next_available_at,
            webhookSent=outcome.webhook_ok,
        ),
    )


@router.post("/v1/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    requester: Requester = Depends(require_requester),
    session: AsyncSession = Depends(get_db_session),
    services: AppServices = Depends(get_services),
) -> BookingResponse:
    if request.email is None and requester.email:
        request = request.model_copy(update={"email": requester.email})
    booking = await booking_service.create_booking(session, request, created_by=requester.user_id)

    booking_id = booking.booking_id
    schedule_background(
        lambda: workflow.run_booking_created(
            booking_id,
            session_factory=services.session_factory,
            dispatcher=services.dispatcher,
            automation=services.automation,
            audit=services.audit,
            broadcaster=services.broadcaster,
        ),
        name="booking_created",
    )
    return BookingResponse.model_validate(booking)


@router.post("/v1/bookings/reschedule-email", response_model=RescheduleResponse)
async def reschedule_booking_by_body(
    request: RescheduleRequest,
    requester: Requester = Depends(require_requester),
    session: AsyncSession = Depends(get_db_session),
    services: AppServices = Depends(get_services),
) -> RescheduleResponse:
    outcome = await request_reschedule(
        session,
        request.bookingId,
        requester,
        automation=services.automation,
        audit=services.audit,
    )
    return _to_reschedule_response(outcome)


@router.get("/v1/bookings/{identifier}", response_model=BookingResponse)
async def get_booking(
    identifier: str,
    requester: Requester = Depends(require_requester),
    session: AsyncSession = Depends(get_db_session),
) -> BookingResponse:
    booking = await booking_service.get_booking(session, identifier)
    if not can_reschedule(booking, requester):
        raise PermissionDeniedError(detail="You do not have access to this booking.")
    return BookingResponse.model_validate(booking)


@router.get("/v1/bookings/{identifier}/emails", response_model=list[EmailLogResponse])
async def get_booking_emails(
    identifier: str,
    requester: Requester = Depends(require_requester),
    session: AsyncSession = Depends(get_db_session),
) -> list[EmailLogResponse]:
    booking = await booking_service.get_booking(session, identifier)
    if not can_reschedule(booking, requester):
        raise PermissionDeniedError(detail="You do not have access to this booking.")
    emails = await list_booking_emails(session, booking.booking_id)
    return [EmailLogResponse.model_validate(email) for email in emails]


@router.patch("/v1/bookings/{identifier}/status", response_model=BookingResponse)
async def update_booking_status(
    identifier: str,
    request: BookingStatusUpdateRequest,
    requester: Requester = Depends(require_privileged),
    session: AsyncSession = Depends(get_db_session),
    services: AppServices = Depends(get_services),
) -> BookingResponse:
    booking, old_status = await booking_service.update_booking_status(
        session, identifier, request, updated_by=requester.user_id
    )
    await services.audit.record(
        ActivityType.STATUS_UPDATED,
        f'Booking status updated from "{old_status}" to "{booking.status}" for {booking.customer_name}',
        booking_id=booking.booking_id,
        metadata={
            "oldStatus": old_status,
            "newStatus": booking.status,
            "customerName": booking.customer_name,
            "brand": booking.brand,
            "updatedBy": requester.label,
        },
        severity=ActivitySeverity.INFO,
    )
    schedule_background(
        lambda: workflow.run_status_updated(
            booking,
            old_status,
            dispatcher=services.dispatcher,
            broadcaster=services.broadcaster,
        ),
        name="booking_status_updated",
    )
    return BookingResponse.model_validate(booking)


@router.post("/v1/bookings/{identifier}/reschedule-email", response_model=RescheduleResponse)
async def reschedule_booking(
    identifier: str,
    requester: Requester = Depends(require_requester),
    session: AsyncSession = Depends(get_db_session),
    services: AppServices = Depends(get_services),
) -> RescheduleResponse:
    outcome = await request_reschedule(
        session,
        identifier,
        requester,
        automation=services.automation,
        audit=services.audit,
    )
    return _to_reschedule_response(outcome)
