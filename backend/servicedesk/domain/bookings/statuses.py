from __future__ import annotations

from typing import Final

BOOKING_STATUS_PENDING: Final[str] = "Pending"
BOOKING_STATUS_SCHEDULED: Final[str] = "Scheduled"
BOOKING_STATUS_COMPLETED: Final[str] = "Completed"
BOOKING_STATUS_CANCELLED: Final[str] = "Cancelled"

BOOKING_STATUSES: Final[tuple[str, ...]] = (
    BOOKING_STATUS_PENDING,
    BOOKING_STATUS_SCHEDULED,
    BOOKING_STATUS_COMPLETED,
    BOOKING_STATUS_CANCELLED,
)

TERMINAL_STATUSES: Final[frozenset[str]] = frozenset({BOOKING_STATUS_COMPLETED, BOOKING_STATUS_CANCELLED})

SERVICE_TYPE_INSTALLATION: Final[str] = "New Installation"
SERVICE_TYPE_COMPLAINT: Final[str] = "Service Complaint"
SERVICE_TYPES: Final[tuple[str, ...]] = (SERVICE_TYPE_INSTALLATION, SERVICE_TYPE_COMPLAINT)


def is_valid_status(value: str) -> bool:
    return value in BOOKING_STATUSES


def is_terminal(value: str) -> bool:
    return value in TERMINAL_STATUSES
