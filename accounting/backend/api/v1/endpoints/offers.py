"""
Offers API Endpoints.

Priced commercial offers for clients and leads, their status workflow,
e-mail delivery and activity log. Gated by the `offers` module.
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
from accounting.backend.models.enums import OfferStatus
from accounting.backend.models.user import User
from accounting.backend.repositories.offer import OfferFilters
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.offer import (
    DuplicateOfferRequest,
    OfferActivityResponse,
    OfferCreate,
    OfferResponse,
    OfferStatistics,
    OfferUpdate,
    SendOfferRequest,
    UpdateOfferStatusRequest,
)
from accounting.backend.services.offers import OfferService

router = APIRouter()

MODULE = "offers"
OfferReader = Annotated[User, Depends(require_module(MODULE, "read"))]
OfferWriter = Annotated[User, Depends(require_module(MODULE, "write"))]
OfferDeleter = Annotated[User, Depends(require_module(MODULE, "delete"))]


@router.get("", summary="List offers (paginated)")
async def list_offers(
    user: OfferReader,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    search: str | None = Query(default=None, max_length=100, description="Offer number or title"),
    status: OfferStatus | None = Query(default=None),
    client_id: str | None = Query(default=None),
    lead_id: str | None = Query(default=None),
    offer_date_from: date | None = Query(default=None),
    offer_date_to: date | None = Query(default=None),
    min_amount: float | None = Query(default=None, ge=0),
    max_amount: float | None = Query(default=None, ge=0),
) -> dict[str, Any]:
    filters = OfferFilters(
        search=search,
        status=status,
        client_id=client_id,
        lead_id=lead_id,
        offer_date_from=offer_date_from,
        offer_date_to=offer_date_to,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    offers, total = await OfferService(db).find_all(user, filters, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=offers,
        item_schema=OfferResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/statistics", response_model=ApiResponse[OfferStatistics], summary="Offer statistics")
async def get_statistics(user: OfferReader, db: DbSession) -> ApiResponse[OfferStatistics]:
    return ApiResponse(data=await OfferService(db).get_statistics(user))


@router.post(
    "",
    response_model=ApiResponse[OfferResponse],
    status_code=201,
    summary="Create an offer",
    description="Either `client_id` or `lead_id` is required. Totals are computed from the service items.",
)
async def create_offer(data: OfferCreate, user: OfferWriter, db: DbSession) -> ApiResponse[OfferResponse]:
    offer = await OfferService(db).create(user, data)
    return ApiResponse(data=OfferResponse.model_validate(offer))


@router.get("/{offer_id}", response_model=ApiResponse[OfferResponse], summary="Get an offer")
async def get_offer(offer_id: str, user: OfferReader, db: DbSession) -> ApiResponse[OfferResponse]:
    offer = await OfferService(db).find_one(user, offer_id)
    return ApiResponse(data=OfferResponse.model_validate(offer))


@router.patch(
    "/{offer_id}",
    response_model=ApiResponse[OfferResponse],
    summary="Update an offer",
    description="Only draft and ready offers can be edited.",
)
async def update_offer(
    offer_id: str,
    data: OfferUpdate,
    user: OfferWriter,
    db: DbSession,
) -> ApiResponse[OfferResponse]:
    offer = await OfferService(db).update(user, offer_id, data)
    return ApiResponse(data=OfferResponse.model_validate(offer))


@router.delete("/{offer_id}", status_code=204, summary="Delete an offer")
async def delete_offer(offer_id: str, user: OfferDeleter, db: DbSession) -> None:
    await OfferService(db).remove(user, offer_id)


@router.patch("/{offer_id}/status", response_model=ApiResponse[OfferResponse], summary="Change offer status")
async def update_status(
    offer_id: str,
    data: UpdateOfferStatusRequest,
    user: OfferWriter,
    db: DbSession,
) -> ApiResponse[OfferResponse]:
    offer = await OfferService(db).update_status(user, offer_id, data.status, data.reason)
    return ApiResponse(data=OfferResponse.model_validate(offer))


@router.post(
    "/{offer_id}/send",
    response_model=ApiResponse[OfferResponse],
    summary="Send an offer by e-mail",
    description="Uses the company e-mail configuration.",
)
async def send_offer(
    offer_id: str,
    data: SendOfferRequest,
    user: OfferWriter,
    db: DbSession,
) -> ApiResponse[OfferResponse]:
    offer = await OfferService(db).send(user, offer_id, data)
    return ApiResponse(data=OfferResponse.model_validate(offer))


@router.post(
    "/{offer_id}/duplicate",
    response_model=ApiResponse[OfferResponse],
    status_code=201,
    summary="Duplicate an offer",
)
async def duplicate_offer(
    offer_id: str,
    data: DuplicateOfferRequest,
    user: OfferWriter,
    db: DbSession,
) -> ApiResponse[OfferResponse]:
    offer = await OfferService(db).duplicate(user, offer_id, data)
    return ApiResponse(data=OfferResponse.model_validate(offer))


@router.get(
    "/{offer_id}/activities",
    response_model=ApiResponse[list[OfferActivityResponse]],
    summary="Offer activity log",
)
async def get_activities(
    offer_id: str,
    user: OfferReader,
    db: DbSession,
) -> ApiResponse[list[OfferActivityResponse]]:
    activities = await OfferService(db).get_activities(user, offer_id)
    return ApiResponse(data=[OfferActivityResponse.model_validate(a) for a in activities])
