"""
Response Envelopes.

    {"success": true,  "data": {...},  "metadata": {...}}
    {"success": true,  "data": [...],  "pagination": {...}, "metadata": {...}}
    {"success": false, "error": {...}, "metadata": {...}}
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from accounting.backend.core.utils import utc_now

DataT = TypeVar("DataT")


class ResponseMetadata(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    request_id: str | None = None


class _Envelope(BaseModel):
    success: bool = True
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class ErrorDetail(BaseModel):
    code: str = Field(..., examples=["RES_NOT_FOUND"])
    message: str
    details: dict[str, Any] | None = None


class ApiResponse(_Envelope, Generic[DataT]):
    """`data` is null for reads of something not configured yet (email, AI)."""

    model_config = ConfigDict(from_attributes=True)

    data: DataT | None = None
    error: ErrorDetail | None = None


class ErrorResponse(_Envelope):
    success: bool = False
    data: None = None
    error: ErrorDetail


class PaginationInfo(BaseModel):
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    page: int = Field(default=1, ge=1)
    total_pages: int = Field(default=0, ge=0)
    has_more: bool = False


class PaginatedResponse(_Envelope, Generic[DataT]):
    data: list[DataT]
    pagination: PaginationInfo


class CountResponse(BaseModel):
    """Rows touched by a bulk operation."""

    count: int
