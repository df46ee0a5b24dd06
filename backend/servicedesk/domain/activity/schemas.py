from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActivityEventResponse(BaseModel):
    activity_id: str
    type: str
    message: str
    booking_id: str | None = None
    brand_name: str | None = None
    severity: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
