from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

EMAIL_SHAPE_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMPTY_MARKERS = ("", "=")


def clean_value(value: Any) -> Any:
    """Map the workflow engine's empty placeholders to ``None``."""
    if value is None:
        return None
    if isinstance(value, str) and value in EMPTY_MARKERS:
        return None
    return value


def as_text(value: Any) -> str | None:
    value = clean_value(value)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class EmailHookData(BaseModel):
    id: str
    from_: str = Field(alias="from")
    subject: str
    replyText: str
    bookingId: str | None
    emailType: str
    timestamp: datetime

    model_config = ConfigDict(populate_by_name=True)


class EmailHookResponse(BaseModel):
    success: bool = True
    message: str = "Email hook received and logged successfully"
    data: EmailHookData


class EmailLogResponse(BaseModel):
    email_log_id: str
    from_address: str
    to_address: str | None
    subject: str
    reply_text: str | None
    email_type: str
    reply_sent: bool
    message_id: str | None
    in_reply_to: str | None
    booking_id: str | None
    timestamp: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmailLogPage(BaseModel):
    success: bool = True
    data: list[EmailLogResponse]
    pagination: dict[str, int]


class EmailStatsResponse(BaseModel):
    success: bool = True
    stats: dict[str, Any]
