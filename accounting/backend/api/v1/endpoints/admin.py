"""
Admin API Endpoints.

User and company administration. Every route requires the ADMIN role.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from accounting.backend.core.dependencies import AdminUser, DbSession, RequestId
from accounting.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from accounting.backend.models.enums import UserRole
from accounting.backend.schemas.admin import CompanyCreate, CompanyResponse, CompanyUpdate, UserCreate, UserUpdate
from accounting.backend.schemas.auth import UserResponse
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.module import CompanyModuleAccessResponse
from accounting.backend.services.admin import AdminService
from accounting.backend.services.modules import ModuleService

router = APIRouter()


# Users


@router.get(
    "/users",
    summary="List users (paginated)",
    description="Filter by role, company or a search over name and email.",
)
async def list_users(
    admin: AdminUser,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    role: UserRole | None = Query(default=None),
    company_id: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
) -> dict[str, Any]:
    users, total = await AdminService(db).list_users(
        role=role,
        company_id=company_id,
        search=search,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=users,
        item_schema=UserResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post(
    "/users",
    response_model=ApiResponse[UserResponse],
    status_code=201,
    summary="Create a user",
)
async def create_user(data: UserCreate, admin: AdminUser, db: DbSession) -> ApiResponse[UserResponse]:
    user = await AdminService(db).create_user(data)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.get("/users/{user_id}", response_model=ApiResponse[UserResponse], summary="Get a user")
async def get_user(user_id: str, admin: AdminUser, db: DbSession) -> ApiResponse[UserResponse]:
    user = await AdminService(db).get_user(user_id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.patch(
    "/users/{user_id}",
    response_model=ApiResponse[UserResponse],
    summary="Update a user",
    description="Changing the role to ADMIN moves the user to the system company.",
)
async def update_user(
    user_id: str,
    data: UserUpdate,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[UserResponse]:
    user = await AdminService(db).update_user(user_id, data)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.delete("/users/{user_id}", status_code=204, summary="Deactivate a user")
async def delete_user(user_id: str, admin: AdminUser, db: DbSession) -> None:
    await AdminService(db).delete_user(user_id)


@router.post("/users/{user_id}/activate", response_model=ApiResponse[UserResponse], summary="Activate a user")
async def activate_user(user_id: str, admin: AdminUser, db: DbSession) -> ApiResponse[UserResponse]:
    user = await AdminService(db).set_user_active(user_id, True)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.post("/users/{user_id}/deactivate", response_model=ApiResponse[UserResponse], summary="Deactivate a user")
async def deactivate_user(user_id: str, admin: AdminUser, db: DbSession) -> ApiResponse[UserResponse]:
    user = await AdminService(db).set_user_active(user_id, False)
    return ApiResponse(data=UserResponse.model_validate(user))


# Companies


@router.get(
    "/companies",
    response_model=ApiResponse[list[CompanyResponse]],
    summary="List companies",
    description="Active companies, without the system company.",
)
async def list_companies(admin: AdminUser, db: DbSession) -> ApiResponse[list[CompanyResponse]]:
    companies = await AdminService(db).list_companies()
    return ApiResponse(data=[CompanyResponse.model_validate(c) for c in companies])


@router.post(
    "/companies",
    response_model=ApiResponse[CompanyResponse],
    status_code=201,
    summary="Create a company",
    description="The owner must be an existing COMPANY_OWNER user.",
)
async def create_company(data: CompanyCreate, admin: AdminUser, db: DbSession) -> ApiResponse[CompanyResponse]:
    company = await AdminService(db).create_company(data)
    return ApiResponse(data=CompanyResponse.model_validate(company))


@router.get("/companies/{company_id}", response_model=ApiResponse[CompanyResponse], summary="Get a company")
async def get_company(company_id: str, admin: AdminUser, db: DbSession) -> ApiResponse[CompanyResponse]:
    company = await AdminService(db).get_company(company_id)
    return ApiResponse(data=CompanyResponse.model_validate(company))


@router.patch("/companies/{company_id}", response_model=ApiResponse[CompanyResponse], summary="Update a company")
async def update_company(
    company_id: str,
    data: CompanyUpdate,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[CompanyResponse]:
    company = await AdminService(db).update_company(company_id, data)
    return ApiResponse(data=CompanyResponse.model_validate(company))


@router.delete("/companies/{company_id}", status_code=204, summary="Deactivate a company")
async def delete_company(company_id: str, admin: AdminUser, db: DbSession) -> None:
    await AdminService(db).delete_company(company_id)


@router.get(
    "/companies/{company_id}/employees",
    response_model=ApiResponse[list[UserResponse]],
    summary="Employees of a company",
)
async def get_company_employees(
    company_id: str,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[list[UserResponse]]:
    employees = await AdminService(db).get_company_employees(company_id)
    return ApiResponse(data=[UserResponse.model_validate(e) for e in employees])


# Company module access


@router.get(
    "/companies/{company_id}/modules",
    response_model=ApiResponse[list[CompanyModuleAccessResponse]],
    summary="Modules of a company",
)
async def get_company_modules(
    company_id: str,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[list[CompanyModuleAccessResponse]]:
    access = await ModuleService(db).get_company_modules(company_id)
    return ApiResponse(data=[CompanyModuleAccessResponse.model_validate(a) for a in access])


@router.post(
    "/companies/{company_id}/modules/{module_id}",
    response_model=ApiResponse[CompanyModuleAccessResponse],
    summary="Grant a module to a company",
)
async def grant_company_module(
    company_id: str,
    module_id: str,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[CompanyModuleAccessResponse]:
    access = await ModuleService(db).grant_module_to_company(company_id, module_id, actor=admin)
    return ApiResponse(data=CompanyModuleAccessResponse.model_validate(access))


@router.delete(
    "/companies/{company_id}/modules/{module_id}",
    status_code=204,
    summary="Revoke a module from a company",
    description="Also removes the module permissions of the company's employees.",
)
async def revoke_company_module(
    company_id: str,
    module_id: str,
    admin: AdminUser,
    db: DbSession,
) -> None:
    await ModuleService(db).revoke_module_from_company(company_id, module_id, actor=admin)
