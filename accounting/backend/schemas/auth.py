"""
Auth and User Schemas.

Request/response validation for registration, login, tokens and the
user representation shared by the admin and company endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from accounting.backend.models.enums import UserRole


class RegisterRequest(BaseModel):
    """Schema for self-registration."""

    email: EmailStr = Field(..., description="Login email", examples=["anna@biuro.pl"])
    password: str = Field(..., min_length=1, max_length=128, description="Plain password")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = Field(default=UserRole.EMPLOYEE, description="Role of the new account")
    company_id: str | None = Field(
        default=None,
        description="Company to join (required for owners and employees)",
    )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """Schema for a user in API responses. The password hash is never included."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    company_id: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenPair):
    """Tokens plus the authenticated user."""

    user: UserResponse
