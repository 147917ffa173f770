"""
Leads API Endpoints.

Sales prospects and their conversion into clients. Leads share the
`offers` module with offers.
"""

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from accounting.backend.core.dependencies import DbSession, RequestId, require_module
from accounting.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from accounting.backend.models.enums import LeadSource, LeadStatus
from accounting.backend.models.user import User
from accounting.backend.repositories.offer import LeadFilters
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.client import ClientResponse
from accounting.backend.schemas.lead import (
    ConvertLeadRequest,
    ConvertLeadResponse,
    LeadCreate,
    LeadResponse,
    LeadStatistics,
    LeadUpdate,
)
from accounting.backend.services.leads import LeadService
from accounting.backend.services.time_calculation import get_day_bounds

router = APIRouter()

MODULE = "offers"
LeadReader = Annotated[User, Depends(require_module(MODULE, "read"))]
LeadWriter = Annotated[User, Depends(require_module(MODULE, "write"))]
LeadDeleter = Annotated[User, Depends(require_module(MODULE, "delete"))]


@router.get("", summary="List leads (paginated)")
async def list_leads(
    user: LeadReader,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    search: str | None = Query(default=None, max_length=100, description="Name, email, NIP or contact person"),
    status: LeadStatus | None = Query(default=None),
    source: LeadSource | None = Query(default=None),
    assigned_to_id: str | None = Query(default=None),
    created_from: date | None = Query(default=None),
    created_to: date | None = Query(default=None),
) -> dict[str, Any]:
    filters = LeadFilters(
        search=search,
        status=status,
        source=source,
        assigned_to_id=assigned_to_id,
        created_from=get_day_bounds(created_from)[0] if created_from else None,
        created_to=get_day_bounds(created_to)[1] if created_to else None,
    )
    leads, total = await LeadService(db).find_all(user, filters, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=leads,
        item_schema=LeadResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/statistics", response_model=ApiResponse[LeadStatistics], summary="Lead pipeline statistics")
async def get_statistics(user: LeadReader, db: DbSession) -> ApiResponse[LeadStatistics]:
    return ApiResponse(data=await LeadService(db).get_statistics(user))


@router.post("", response_model=ApiResponse[LeadResponse], status_code=201, summary="Create a lead")
async def create_lead(data: LeadCreate, user: LeadWriter, db: DbSession) -> ApiResponse[LeadResponse]:
    lead = await LeadService(db).create(user, data)
    return ApiResponse(data=LeadResponse.model_validate(lead))


@router.get("/{lead_id}", response_model=ApiResponse[LeadResponse], summary="Get a lead")
async def get_lead(lead_id: str, user: LeadReader, db: DbSession) -> ApiResponse[LeadResponse]:
    lead = await LeadService(db).find_one(user, lead_id)
    return ApiResponse(data=LeadResponse.model_validate(lead))


@router.patch(
    "/{lead_id}",
    response_model=ApiResponse[LeadResponse],
    summary="Update a lead",
    description="Converted leads are read-only.",
)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    user: LeadWriter,
    db: DbSession,
) -> ApiResponse[LeadResponse]:
    lead = await LeadService(db).update(user, lead_id, data)
    return ApiResponse(data=LeadResponse.model_validate(lead))


@router.delete(
    "/{lead_id}",
    status_code=204,
    summary="Delete a lead",
    description="Leads referenced by offers cannot be deleted.",
)
async def delete_lead(lead_id: str, user: LeadDeleter, db: DbSession) -> None:
    await LeadService(db).remove(user, lead_id)


@router.post(
    "/{lead_id}/convert",
    response_model=ApiResponse[ConvertLeadResponse],
    summary="Convert a lead to a client",
    description="Creates a client from the lead. Body fields override the lead's data.",
)
async def convert_lead(
    lead_id: str,
    data: ConvertLeadRequest,
    user: LeadWriter,
    db: DbSession,
) -> ApiResponse[ConvertLeadResponse]:
    lead, client = await LeadService(db).convert_to_client(user, lead_id, data)
    return ApiResponse(
        data=ConvertLeadResponse(
            lead=LeadResponse.model_validate(lead),
            client=ClientResponse.model_validate(client),
        )
    )
