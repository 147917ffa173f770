"""
Offer Schemas.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from accounting.backend.models.enums import OfferActivityType, OfferStatus


class ServiceItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Monthly bookkeeping"])
    description: str | None = Field(default=None, max_length=2000)
    unit_price: float = Field(..., ge=0)
    quantity: float = Field(default=1, gt=0)
    unit: str | None = Field(default=None, max_length=20, examples=["month"])


class ServiceTerms(BaseModel):
    items: list[ServiceItem] = Field(..., min_length=1)
    payment_term_days: int | None = Field(default=None, ge=0, le=365)
    payment_method: str | None = Field(default=None, max_length=100)
    additional_terms: str | None = Field(default=None, max_length=5000)


class OfferCreate(BaseModel):
    """Schema for creating an offer for a client or a lead."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    client_id: str | None = None
    lead_id: str | None = None
    vat_rate: float = Field(default=23, ge=0, le=100)
    service_terms: ServiceTerms | None = None
    offer_date: date | None = None
    valid_until: date | None = None
    validity_days: int | None = Field(default=None, ge=1, le=365)


class OfferUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    vat_rate: float | None = Field(default=None, ge=0, le=100)
    service_terms: ServiceTerms | None = None
    offer_date: date | None = None
    valid_until: date | None = None


class UpdateOfferStatusRequest(BaseModel):
    status: OfferStatus
    reason: str | None = Field(default=None, max_length=1000)


class SendOfferRequest(BaseModel):
    email: EmailStr
    subject: str | None = Field(default=None, max_length=500)
    body: str | None = Field(default=None, max_length=20000)
    cc: list[EmailStr] = Field(default_factory=list)


class DuplicateOfferRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    client_id: str | None = None
    lead_id: str | None = None


class OfferResponse(BaseModel):
    id: str
    offer_number: str
    title: str
    description: str | None
    status: OfferStatus
    client_id: str | None
    lead_id: str | None
    recipient_snapshot: dict[str, Any]
    service_terms: dict[str, Any] | None
    vat_rate: float
    total_net_amount: float
    total_gross_amount: float
    offer_date: date
    valid_until: date
    sent_at: datetime | None
    sent_to_email: str | None
    email_subject: str | None
    created_by_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OfferActivityResponse(BaseModel):
    id: str
    offer_id: str
    activity_type: OfferActivityType
    description: str | None
    activity_data: dict[str, Any] | None
    performed_by_id: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OfferStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
    total_value: float
    accepted_value: float
    conversion_rate: float
