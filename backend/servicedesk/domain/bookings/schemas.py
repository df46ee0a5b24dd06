from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from servicedesk.domain.bookings.statuses import BOOKING_STATUSES, SERVICE_TYPE_COMPLAINT
from servicedesk.infra.email_validation import ContactEmailStr


class BookingCreateRequest(BaseModel):
    customer_name: str = Field(min_length=1, max_length=200)
    email: ContactEmailStr | None = None
    contact_number: str = Field(min_length=5, max_length=32)
    alternate_contact_number: str | None = Field(None, max_length=32)
    address: str = Field(min_length=1, max_length=500)
    alternate_address: str | None = Field(None, max_length=500)
    landmark: str | None = Field(None, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    pin_code: str = Field(min_length=3, max_length=16)
    service_type: Literal["New Installation", "Service Complaint"] = "New Installation"
    problem_description: str | None = None
    date_of_purchase: str | None = Field(None, max_length=32)
    category_name: str | None = Field(None, max_length=100)
    brand: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    serial_number: str | None = Field(None, max_length=100)
    invoice_number: str | None = Field(None, max_length=100)
    invoice_image: str | None = Field(None, max_length=500)
    preferred_datetime: datetime | None = None

    @model_validator(mode="after")
    def require_problem_for_complaints(self) -> "BookingCreateRequest":
        if self.service_type == SERVICE_TYPE_COMPLAINT and not (self.problem_description or "").strip():
            raise ValueError("problem_description is required for service complaints")
        return self


class BookingStatusUpdateRequest(BaseModel):
    status: str
    message: str | None = Field(None, max_length=2000)
    assigned_to: str | None = None

    @model_validator(mode="after")
    def validate_status(self) -> "BookingStatusUpdateRequest":
        if self.status not in BOOKING_STATUSES:
            raise ValueError(f"status must be one of {', '.join(BOOKING_STATUSES)}")
        return self


class RescheduleRequest(BaseModel):
    bookingId: str = Field(min_length=1)


class BookingUpdateEntry(BaseModel):
    message: str
    timestamp: datetime
    updated_by: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(BaseModel):
    booking_id: str
    short_code: str
    customer_name: str
    email: str | None
    contact_number: str
    alternate_contact_number: str | None = None
    address: str
    landmark: str | None = None
    city: str
    state: str
    pin_code: str
    service_type: str
    problem_description: str | None = None
    category_name: str | None = None
    brand: str
    model: str
    serial_number: str | None = None
    invoice_number: str | None = None
    invoice_image: str | None = None
    preferred_datetime: datetime | None = None
    status: str
    assigned_to: str | None = None
    created_by: str | None = None
    reschedule_count: int
    last_reschedule_email_at: datetime | None = None
    created_at: datetime
    updates: list[BookingUpdateEntry] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class RescheduleData(BaseModel):
    bookingId: str
    lastRescheduleEmailAt: datetime
    rescheduleCount: int
    nextAvailableAt: datetime
    webhookSent: bool


class RescheduleResponse(BaseModel):
    success: bool
    message: str
    data: RescheduleData
