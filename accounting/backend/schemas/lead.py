"""
Lead Schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from accounting.backend.models.enums import LeadSource, LeadStatus
from accounting.backend.schemas.client import ClientResponse


class LeadBase(BaseModel):
    nip: str | None = Field(default=None, max_length=20)
    regon: str | None = Field(default=None, max_length=20)
    street: str | None = Field(default=None, max_length=255)
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    contact_person: str | None = Field(default=None, max_length=255)
    contact_position: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    source: LeadSource | None = None
    notes: str | None = Field(default=None, max_length=10000)
    estimated_value: float | None = Field(default=None, ge=0)
    assigned_to_id: str | None = None


class LeadCreate(LeadBase):
    name: str = Field(..., min_length=1, max_length=255, examples=["Piekarnia Zielińscy"])


class LeadUpdate(LeadBase):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    status: LeadStatus | None = None


class LeadResponse(LeadBase):
    id: str
    name: str
    email: str | None
    status: LeadStatus
    converted_to_client_id: str | None
    converted_at: datetime | None
    created_by_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConvertLeadRequest(BaseModel):
    """Overrides applied to the client created from the lead."""

    client_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)


class ConvertLeadResponse(BaseModel):
    lead: LeadResponse
    client: ClientResponse


class LeadStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
    conversion_rate: float
