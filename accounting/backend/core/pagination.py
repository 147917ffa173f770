"""
Pagination Utilities.

List endpoints take `page` (1-based) and `limit` from the query string.
Repositories only understand limit/offset, so PaginationParams converts
between the two and create_paginated_response converts back for the
`pagination` block of the envelope.
"""

import math
from dataclasses import dataclass
from typing import Any

from fastapi import Query
from pydantic import BaseModel

from accounting.backend.schemas.base import PaginatedResponse, PaginationInfo, ResponseMetadata

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class PaginationParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        """Rows to skip before the requested page."""
        return (self.page - 1) * self.limit


def get_pagination_params(
    page: int = Query(default=1, ge=1, description="Page number, starting at 1"),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
) -> PaginationParams:
    """
    Dependency reading `page` and `limit`.

    Usage:
        @router.get("")
        async def list_clients(pagination: PaginationParams = Depends(get_pagination_params)):
            clients, total = await service.find_all(user, filters, pagination.limit, pagination.offset)
    """
    return PaginationParams(page=page, limit=limit)


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


def build_pagination_info(total: int, limit: int, offset: int, returned: int) -> PaginationInfo:
    """has_more is true while rows remain after the current page."""
    return PaginationInfo(
        total=total,
        limit=limit,
        page=offset // limit + 1 if limit else 1,
        total_pages=total_pages(total, limit),
        has_more=offset + returned < total,
    )


def create_paginated_response(
    items: list[Any],
    item_schema: type[BaseModel],
    total: int,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    request_id: str | None = None,
) -> dict[str, Any]:
    """
    Serialize a page of ORM rows into the paginated envelope.

    Every row goes through `item_schema` so list endpoints expose exactly
    the fields their detail endpoints do.
    """
    page = [item_schema.model_validate(item).model_dump(mode="json") for item in items]
    envelope = PaginatedResponse(
        data=page,
        pagination=build_pagination_info(total, limit, offset, len(page)),
        metadata=ResponseMetadata(request_id=request_id),
    )
    return envelope.model_dump(mode="json")
