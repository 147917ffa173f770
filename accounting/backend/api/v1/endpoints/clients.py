"""
Clients API Endpoints.

Client registry with change history, custom fields and icons. Gated by
the `clients` module: reads need `read`, changes `write`, removals
`delete`.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Response

from accounting.backend.core.dependencies import DbSession, RequestId, require_module
from accounting.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from accounting.backend.models.enums import AmlGroup, EmploymentType, TaxScheme, VatStatus, ZusStatus
from accounting.backend.models.user import User
from accounting.backend.repositories.client import ClientFilters
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.client import (
    ChangeLogResponse,
    ClientCreate,
    ClientResponse,
    ClientStatistics,
    ClientUpdate,
    CustomFieldValueResponse,
    CustomFieldValueSet,
    CustomFieldValuesSet,
    FieldDefinitionCreate,
    FieldDefinitionResponse,
    FieldDefinitionUpdate,
    IconCreate,
    IconResponse,
    IconUpdate,
    SetClientIcons,
)
from accounting.backend.services.client_fields import ClientFieldService
from accounting.backend.services.client_icons import ClientIconService
from accounting.backend.services.clients import ClientService

router = APIRouter()

MODULE = "clients"
ClientReader = Annotated[User, Depends(require_module(MODULE, "read"))]
ClientWriter = Annotated[User, Depends(require_module(MODULE, "write"))]
ClientDeleter = Annotated[User, Depends(require_module(MODULE, "delete"))]


@router.get(
    "",
    summary="List clients (paginated)",
    description="Search matches name, NIP and email. Only active clients unless is_active=false.",
)
async def list_clients(
    user: ClientReader,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    search: str | None = Query(default=None, max_length=100),
    employment_type: EmploymentType | None = Query(default=None),
    vat_status: VatStatus | None = Query(default=None),
    tax_scheme: TaxScheme | None = Query(default=None),
    zus_status: ZusStatus | None = Query(default=None),
    aml_group: AmlGroup | None = Query(default=None),
    gtu_code: str | None = Query(default=None, max_length=20),
    receive_email_copy: bool | None = Query(default=None),
    is_active: bool = Query(default=True),
) -> dict[str, Any]:
    filters = ClientFilters(
        search=search,
        employment_type=employment_type,
        vat_status=vat_status,
        tax_scheme=tax_scheme,
        zus_status=zus_status,
        aml_group=aml_group,
        gtu_code=gtu_code,
        receive_email_copy=receive_email_copy,
        is_active=is_active,
    )
    clients, total = await ClientService(db).find_all(user, filters, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=clients,
        item_schema=ClientResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("", response_model=ApiResponse[ClientResponse], status_code=201, summary="Create a client")
async def create_client(data: ClientCreate, user: ClientWriter, db: DbSession) -> ApiResponse[ClientResponse]:
    client = await ClientService(db).create(user, data)
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.get("/changelog", summary="Company client history (paginated)")
async def company_changelog(
    user: ClientReader,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    entries, total = await ClientService(db).get_company_changelog(user, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=entries,
        item_schema=ChangeLogResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/statistics", response_model=ApiResponse[ClientStatistics], summary="Client counts for the dashboard")
async def get_statistics(user: ClientReader, db: DbSession) -> ApiResponse[ClientStatistics]:
    return ApiResponse(data=await ClientService(db).get_statistics(user))


@router.get(
    "/export",
    response_class=Response,
    summary="Export clients as CSV",
    description="Accepts the list filters. Rows are ordered by name.",
)
async def export_clients(
    user: ClientReader,
    db: DbSession,
    search: str | None = Query(default=None, max_length=100),
    employment_type: EmploymentType | None = Query(default=None),
    vat_status: VatStatus | None = Query(default=None),
    tax_scheme: TaxScheme | None = Query(default=None),
    zus_status: ZusStatus | None = Query(default=None),
    is_active: bool = Query(default=True),
) -> Response:
    filters = ClientFilters(
        search=search,
        employment_type=employment_type,
        vat_status=vat_status,
        tax_scheme=tax_scheme,
        zus_status=zus_status,
        is_active=is_active,
    )
    content = await ClientService(db).export_csv(user, filters)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="clients.csv"'},
    )


# Custom field definitions


@router.get("/fields", response_model=ApiResponse[list[FieldDefinitionResponse]], summary="List custom fields")
async def list_field_definitions(user: ClientReader, db: DbSession) -> ApiResponse[list[FieldDefinitionResponse]]:
    definitions = await ClientFieldService(db).list_definitions(user)
    return ApiResponse(data=[FieldDefinitionResponse.model_validate(d) for d in definitions])


@router.post(
    "/fields",
    response_model=ApiResponse[FieldDefinitionResponse],
    status_code=201,
    summary="Create a custom field",
    description="ENUM and MULTISELECT fields need enum_values.",
)
async def create_field_definition(
    data: FieldDefinitionCreate,
    user: ClientWriter,
    db: DbSession,
) -> ApiResponse[FieldDefinitionResponse]:
    definition = await ClientFieldService(db).create_definition(user, data)
    return ApiResponse(data=FieldDefinitionResponse.model_validate(definition))


@router.get("/fields/{definition_id}", response_model=ApiResponse[FieldDefinitionResponse], summary="Get a custom field")
async def get_field_definition(
    definition_id: str,
    user: ClientReader,
    db: DbSession,
) -> ApiResponse[FieldDefinitionResponse]:
    definition = await ClientFieldService(db).get_definition(user, definition_id)
    return ApiResponse(data=FieldDefinitionResponse.model_validate(definition))


@router.patch(
    "/fields/{definition_id}",
    response_model=ApiResponse[FieldDefinitionResponse],
    summary="Update a custom field",
)
async def update_field_definition(
    definition_id: str,
    data: FieldDefinitionUpdate,
    user: ClientWriter,
    db: DbSession,
) -> ApiResponse[FieldDefinitionResponse]:
    definition = await ClientFieldService(db).update_definition(user, definition_id, data)
    return ApiResponse(data=FieldDefinitionResponse.model_validate(definition))


@router.delete("/fields/{definition_id}", status_code=204, summary="Deactivate a custom field")
async def delete_field_definition(definition_id: str, user: ClientDeleter, db: DbSession) -> None:
    await ClientFieldService(db).delete_definition(user, definition_id)


@router.delete(
    "/fields/{definition_id}/permanent",
    status_code=204,
    summary="Delete a custom field permanently",
    description="Removes the definition and every stored value.",
)
async def hard_delete_field_definition(definition_id: str, user: ClientDeleter, db: DbSession) -> None:
    await ClientFieldService(db).hard_delete_definition(user, definition_id)


# Icons


@router.get("/icons", response_model=ApiResponse[list[IconResponse]], summary="List icons")
async def list_icons(user: ClientReader, db: DbSession) -> ApiResponse[list[IconResponse]]:
    icons = await ClientIconService(db).list_icons(user)
    return ApiResponse(data=[IconResponse.model_validate(i) for i in icons])


@router.post("/icons", response_model=ApiResponse[IconResponse], status_code=201, summary="Create an icon")
async def create_icon(data: IconCreate, user: ClientWriter, db: DbSession) -> ApiResponse[IconResponse]:
    icon = await ClientIconService(db).create_icon(user, data)
    return ApiResponse(data=IconResponse.model_validate(icon))


@router.get("/icons/{icon_id}", response_model=ApiResponse[IconResponse], summary="Get an icon")
async def get_icon(icon_id: str, user: ClientReader, db: DbSession) -> ApiResponse[IconResponse]:
    icon = await ClientIconService(db).get_icon(user, icon_id)
    return ApiResponse(data=IconResponse.model_validate(icon))


@router.patch("/icons/{icon_id}", response_model=ApiResponse[IconResponse], summary="Update an icon")
async def update_icon(icon_id: str, data: IconUpdate, user: ClientWriter, db: DbSession) -> ApiResponse[IconResponse]:
    icon = await ClientIconService(db).update_icon(user, icon_id, data)
    return ApiResponse(data=IconResponse.model_validate(icon))


@router.delete("/icons/{icon_id}", status_code=204, summary="Deactivate an icon")
async def delete_icon(icon_id: str, user: ClientDeleter, db: DbSession) -> None:
    await ClientIconService(db).delete_icon(user, icon_id)


# Single client


@router.get("/{client_id}", response_model=ApiResponse[ClientResponse], summary="Get a client")
async def get_client(client_id: str, user: ClientReader, db: DbSession) -> ApiResponse[ClientResponse]:
    client = await ClientService(db).find_one(user, client_id)
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.patch(
    "/{client_id}",
    response_model=ApiResponse[ClientResponse],
    summary="Update a client",
    description="Only provided fields are changed. Changes are recorded in the client history.",
)
async def update_client(
    client_id: str,
    data: ClientUpdate,
    user: ClientWriter,
    db: DbSession,
) -> ApiResponse[ClientResponse]:
    client = await ClientService(db).update(user, client_id, data)
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.delete("/{client_id}", status_code=204, summary="Deactivate a client")
async def delete_client(client_id: str, user: ClientDeleter, db: DbSession) -> None:
    await ClientService(db).remove(user, client_id)


@router.delete(
    "/{client_id}/permanent",
    status_code=204,
    summary="Delete a client permanently",
    description="Also removes its custom field values and icon assignments.",
)
async def hard_delete_client(client_id: str, user: ClientDeleter, db: DbSession) -> None:
    await ClientService(db).hard_delete(user, client_id)


@router.post("/{client_id}/restore", response_model=ApiResponse[ClientResponse], summary="Restore a client")
async def restore_client(client_id: str, user: ClientWriter, db: DbSession) -> ApiResponse[ClientResponse]:
    client = await ClientService(db).restore(user, client_id)
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.get(
    "/{client_id}/changelog",
    response_model=ApiResponse[list[ChangeLogResponse]],
    summary="Client history",
)
async def client_changelog(client_id: str, user: ClientReader, db: DbSession) -> ApiResponse[list[ChangeLogResponse]]:
    entries = await ClientService(db).get_changelog(user, client_id)
    return ApiResponse(data=[ChangeLogResponse.model_validate(e) for e in entries])


# Custom field values


@router.get(
    "/{client_id}/custom-fields",
    response_model=ApiResponse[list[CustomFieldValueResponse]],
    summary="Custom field values of a client",
)
async def get_custom_field_values(
    client_id: str,
    user: ClientReader,
    db: DbSession,
) -> ApiResponse[list[CustomFieldValueResponse]]:
    values = await ClientFieldService(db).get_client_values(user, client_id)
    return ApiResponse(data=[CustomFieldValueResponse.model_validate(v) for v in values])


@router.put(
    "/{client_id}/custom-fields",
    response_model=ApiResponse[list[CustomFieldValueResponse]],
    summary="Set several custom field values",
    description="All values are validated first; one invalid value rejects the whole request.",
)
async def set_custom_field_values(
    client_id: str,
    data: CustomFieldValuesSet,
    user: ClientWriter,
    db: DbSession,
) -> ApiResponse[list[CustomFieldValueResponse]]:
    values = await ClientFieldService(db).set_values(user, client_id, data.values)
    return ApiResponse(data=[CustomFieldValueResponse.model_validate(v) for v in values])


@router.put(
    "/{client_id}/custom-fields/{definition_id}",
    response_model=ApiResponse[CustomFieldValueResponse],
    summary="Set a custom field value",
)
async def set_custom_field_value(
    client_id: str,
    definition_id: str,
    data: CustomFieldValueSet,
    user: ClientWriter,
    db: DbSession,
) -> ApiResponse[CustomFieldValueResponse]:
    value = await ClientFieldService(db).set_value(user, client_id, definition_id, data.value)
    return ApiResponse(data=CustomFieldValueResponse.model_validate(value))


@router.delete("/{client_id}/custom-fields/{definition_id}", status_code=204, summary="Clear a custom field value")
async def remove_custom_field_value(client_id: str, definition_id: str, user: ClientWriter, db: DbSession) -> None:
    await ClientFieldService(db).remove_value(user, client_id, definition_id)


# Icon assignments


@router.get("/{client_id}/icons", response_model=ApiResponse[list[IconResponse]], summary="Icons of a client")
async def get_client_icons(client_id: str, user: ClientReader, db: DbSession) -> ApiResponse[list[IconResponse]]:
    icons = await ClientIconService(db).get_client_icons(user, client_id)
    return ApiResponse(data=[IconResponse.model_validate(i) for i in icons])


@router.put(
    "/{client_id}/icons",
    response_model=ApiResponse[list[IconResponse]],
    summary="Replace the icons of a client",
)
async def set_client_icons(
    client_id: str,
    data: SetClientIcons,
    user: ClientWriter,
    db: DbSession,
) -> ApiResponse[list[IconResponse]]:
    icons = await ClientIconService(db).set_client_icons(user, client_id, data.icon_ids)
    return ApiResponse(data=[IconResponse.model_validate(i) for i in icons])


@router.post("/{client_id}/icons/{icon_id}", status_code=204, summary="Assign an icon")
async def assign_icon(client_id: str, icon_id: str, user: ClientWriter, db: DbSession) -> None:
    await ClientIconService(db).assign(user, client_id, icon_id)


@router.delete("/{client_id}/icons/{icon_id}", status_code=204, summary="Unassign an icon")
async def unassign_icon(client_id: str, icon_id: str, user: ClientWriter, db: DbSession) -> None:
    await ClientIconService(db).unassign(user, client_id, icon_id)
