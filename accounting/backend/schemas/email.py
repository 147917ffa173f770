"""
Email Client Schemas.

Passwords are write-only: they are accepted on create/update and never
serialized back.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class EmailConfigBase(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    smtp_host: str = Field(..., min_length=1, max_length=255, examples=["smtp.example.com"])
    smtp_port: int = Field(default=465, ge=1, le=65535)
    smtp_secure: bool = True
    smtp_user: str = Field(..., min_length=1, max_length=255)
    imap_host: str = Field(..., min_length=1, max_length=255, examples=["imap.example.com"])
    imap_port: int = Field(default=993, ge=1, le=65535)
    imap_tls: bool = True
    imap_user: str = Field(..., min_length=1, max_length=255)


class EmailConfigCreate(EmailConfigBase):
    smtp_password: str = Field(..., min_length=1, max_length=500)
    imap_password: str = Field(..., min_length=1, max_length=500)


class EmailConfigUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    smtp_host: str | None = Field(default=None, min_length=1, max_length=255)
    smtp_port: int | None = Field(default=None, ge=1, le=65535)
    smtp_secure: bool | None = None
    smtp_user: str | None = Field(default=None, min_length=1, max_length=255)
    smtp_password: str | None = Field(default=None, min_length=1, max_length=500)
    imap_host: str | None = Field(default=None, min_length=1, max_length=255)
    imap_port: int | None = Field(default=None, ge=1, le=65535)
    imap_tls: bool | None = None
    imap_user: str | None = Field(default=None, min_length=1, max_length=255)
    imap_password: str | None = Field(default=None, min_length=1, max_length=500)
    is_active: bool | None = None


class EmailConfigResponse(EmailConfigBase):
    id: str
    user_id: str | None
    company_id: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SendEmailRequest(BaseModel):
    to: list[EmailStr] = Field(..., min_length=1, max_length=50)
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., max_length=100000)
    cc: list[EmailStr] = Field(default_factory=list, max_length=50)


class SendEmailResult(BaseModel):
    sent: bool
    recipients: list[str]


class InboxMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uid: str
    sender: str
    subject: str
    date: str | None = None


class DraftCreate(BaseModel):
    to: list[EmailStr] = Field(default_factory=list, max_length=50)
    cc: list[EmailStr] = Field(default_factory=list, max_length=50)
    subject: str | None = Field(default=None, max_length=500)
    body: str | None = Field(default=None, max_length=100000)


class DraftUpdate(BaseModel):
    to: list[EmailStr] | None = Field(default=None, max_length=50)
    cc: list[EmailStr] | None = Field(default=None, max_length=50)
    subject: str | None = Field(default=None, max_length=500)
    body: str | None = Field(default=None, max_length=100000)


class DraftResponse(BaseModel):
    id: str
    user_id: str
    to: list[str]
    cc: list[str]
    subject: str | None
    body: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
