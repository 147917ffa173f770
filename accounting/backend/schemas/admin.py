"""
Admin Schemas.

User and company management performed by ADMIN users.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from accounting.backend.models.enums import UserRole


class UserCreate(BaseModel):
    """Schema for creating any user."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole
    company_id: str | None = None


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=1, max_length=128)
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    role: UserRole | None = None
    company_id: str | None = None
    is_active: bool | None = None


class CompanyCreate(BaseModel):
    """Schema for creating a company owned by an existing COMPANY_OWNER user."""

    name: str = Field(..., min_length=1, max_length=255, examples=["Biuro Rachunkowe Nowak"])
    owner_id: str = Field(..., description="User who will own the company")
    nip: str | None = Field(default=None, max_length=20)
    description: str | None = Field(default=None, max_length=5000)


class CompanyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    nip: str | None = Field(default=None, max_length=20)
    description: str | None = Field(default=None, max_length=5000)
    is_active: bool | None = None


class CompanyResponse(BaseModel):
    id: str
    name: str
    nip: str | None
    description: str | None
    owner_id: str | None
    is_system_company: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
