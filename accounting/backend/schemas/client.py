"""
Client Schemas.

Clients, change log, custom fields and icons.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from accounting.backend.models.enums import (
    AmlGroup,
    ChangeAction,
    CustomFieldType,
    EmploymentType,
    IconType,
    TaxScheme,
    VatStatus,
    ZusStatus,
)


class ClientBase(BaseModel):
    nip: str | None = Field(default=None, max_length=20, examples=["5213456789"])
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    company_start_date: date | None = None
    cooperation_start_date: date | None = None
    description: str | None = Field(default=None, max_length=10000)
    employment_type: EmploymentType | None = None
    vat_status: VatStatus | None = None
    tax_scheme: TaxScheme | None = None
    zus_status: ZusStatus | None = None
    aml_group: AmlGroup | None = None


class ClientCreate(ClientBase):
    """Schema for creating a client."""

    name: str = Field(..., min_length=1, max_length=255, examples=["Kowalski Sp. z o.o."])
    gtu_codes: list[str] = Field(default_factory=list)
    receive_email_copy: bool = True


class ClientUpdate(ClientBase):
    """Only fields present in the request body are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    gtu_codes: list[str] | None = None
    receive_email_copy: bool | None = None


class ClientResponse(ClientBase):
    id: str
    company_id: str
    name: str
    email: str | None
    gtu_codes: list[str]
    receive_email_copy: bool
    is_active: bool
    created_by_id: str | None
    updated_by_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChangeLogResponse(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    action: ChangeAction
    changes: dict[str, Any]
    user_id: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Custom fields
# =============================================================================


class FieldDefinitionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9_]+$")
    label: str = Field(..., min_length=1, max_length=255)
    field_type: CustomFieldType
    is_required: bool = False
    enum_values: list[str] | None = None
    display_order: int = 0


class FieldDefinitionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9_]+$")
    label: str | None = Field(default=None, min_length=1, max_length=255)
    field_type: CustomFieldType | None = None
    is_required: bool | None = None
    enum_values: list[str] | None = None
    display_order: int | None = None


class FieldDefinitionResponse(BaseModel):
    id: str
    name: str
    label: str
    field_type: CustomFieldType
    is_required: bool
    enum_values: list[str] | None
    display_order: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomFieldValueSet(BaseModel):
    value: str | None = None


class CustomFieldValueItem(BaseModel):
    field_definition_id: str
    value: str | None = None


class CustomFieldValuesSet(BaseModel):
    values: list[CustomFieldValueItem] = Field(..., min_length=1)


class CustomFieldValueResponse(BaseModel):
    id: str
    client_id: str
    field_definition_id: str
    value: str | None
    is_active: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Icons
# =============================================================================


class IconCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon_type: IconType = IconType.LUCIDE
    icon_value: str = Field(..., min_length=1, max_length=255, examples=["star"])
    color: str | None = Field(default=None, max_length=20, examples=["#f59e0b"])


class IconUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    icon_type: IconType | None = None
    icon_value: str | None = Field(default=None, min_length=1, max_length=255)
    color: str | None = Field(default=None, max_length=20)


class IconResponse(BaseModel):
    id: str
    name: str
    icon_type: IconType
    icon_value: str
    color: str | None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SetClientIcons(BaseModel):
    icon_ids: list[str]


class ClientStatistics(BaseModel):
    """Category counts cover active clients. Every enum value is present, zero when unused."""

    total: int
    active: int
    inactive: int
    by_employment_type: dict[str, int]
    by_vat_status: dict[str, int]
    by_tax_scheme: dict[str, int]
    by_zus_status: dict[str, int]
    added_this_month: int
    added_last_30_days: int
