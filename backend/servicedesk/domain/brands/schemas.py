from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from servicedesk.domain.brands.channels import CHANNELS, COMMUNICATION_MODES


class BrandSaveRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    contact_email: EmailStr | None = None
    whatsapp_number: str | None = Field(None, max_length=32)
    preferred_communication: list[str] | None = None
    communication_mode: str | None = None
    is_active: bool = True

    @field_validator("name", "whatsapp_number", mode="before")
    @classmethod
    def strip_strings(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("preferred_communication")
    @classmethod
    def known_channels(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        unknown = [channel for channel in value if channel not in CHANNELS]
        if unknown:
            raise ValueError(f"unsupported channel(s): {', '.join(unknown)}")
        return value

    @field_validator("communication_mode")
    @classmethod
    def known_mode(cls, value: str | None) -> str | None:
        if value is not None and value not in COMMUNICATION_MODES:
            raise ValueError(f"unsupported communication mode; expected one of {', '.join(COMMUNICATION_MODES)}")
        return value


class BrandResponse(BaseModel):
    brand_id: str
    name: str
    contact_email: str | None
    whatsapp_number: str | None
    preferred_communication: list[str]
    communication_mode: str
    communication_methods: list[str]
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
