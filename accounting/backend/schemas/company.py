"""
Company (owner) Schemas.
"""

from pydantic import BaseModel, EmailStr, Field


class EmployeeCreate(BaseModel):
    """Schema for an owner adding an employee. The role is always EMPLOYEE."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class EmployeeUpdate(BaseModel):
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    is_active: bool | None = None


class EmployeePermissions(BaseModel):
    permissions: list[str] = Field(..., min_length=1, examples=[["read", "write"]])
