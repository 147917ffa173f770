"""
Company API Endpoints.

The company owner's view of their own company and its employees,
including the modules each employee may use.
"""

from fastapi import APIRouter

from accounting.backend.core.dependencies import DbSession, OwnerUser
from accounting.backend.schemas.admin import CompanyResponse
from accounting.backend.schemas.auth import UserResponse
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.company import EmployeeCreate, EmployeePermissions, EmployeeUpdate
from accounting.backend.schemas.module import UserModulePermissionResponse
from accounting.backend.services.company import CompanyService
from accounting.backend.services.modules import ModuleService

router = APIRouter()


@router.get("", response_model=ApiResponse[CompanyResponse], summary="Own company")
async def get_company(owner: OwnerUser, db: DbSession) -> ApiResponse[CompanyResponse]:
    company = await CompanyService(db).get_company(owner)
    return ApiResponse(data=CompanyResponse.model_validate(company))


@router.get("/employees", response_model=ApiResponse[list[UserResponse]], summary="List employees")
async def list_employees(owner: OwnerUser, db: DbSession) -> ApiResponse[list[UserResponse]]:
    employees = await CompanyService(db).list_employees(owner)
    return ApiResponse(data=[UserResponse.model_validate(e) for e in employees])


@router.post(
    "/employees",
    response_model=ApiResponse[UserResponse],
    status_code=201,
    summary="Create an employee",
)
async def create_employee(data: EmployeeCreate, owner: OwnerUser, db: DbSession) -> ApiResponse[UserResponse]:
    employee = await CompanyService(db).create_employee(owner, data)
    return ApiResponse(data=UserResponse.model_validate(employee))


@router.get("/employees/{employee_id}", response_model=ApiResponse[UserResponse], summary="Get an employee")
async def get_employee(employee_id: str, owner: OwnerUser, db: DbSession) -> ApiResponse[UserResponse]:
    employee = await CompanyService(db).get_employee(owner, employee_id)
    return ApiResponse(data=UserResponse.model_validate(employee))


@router.patch("/employees/{employee_id}", response_model=ApiResponse[UserResponse], summary="Update an employee")
async def update_employee(
    employee_id: str,
    data: EmployeeUpdate,
    owner: OwnerUser,
    db: DbSession,
) -> ApiResponse[UserResponse]:
    employee = await CompanyService(db).update_employee(owner, employee_id, data)
    return ApiResponse(data=UserResponse.model_validate(employee))


@router.delete("/employees/{employee_id}", status_code=204, summary="Deactivate an employee")
async def delete_employee(employee_id: str, owner: OwnerUser, db: DbSession) -> None:
    await CompanyService(db).delete_employee(owner, employee_id)


# Employee module permissions


@router.get(
    "/employees/{employee_id}/modules",
    response_model=ApiResponse[list[UserModulePermissionResponse]],
    summary="Modules granted to an employee",
)
async def get_employee_modules(
    employee_id: str,
    owner: OwnerUser,
    db: DbSession,
) -> ApiResponse[list[UserModulePermissionResponse]]:
    grants = await ModuleService(db).get_employee_modules(owner, employee_id)
    return ApiResponse(data=[UserModulePermissionResponse.model_validate(g) for g in grants])


@router.post(
    "/employees/{employee_id}/modules/{module_slug}",
    response_model=ApiResponse[UserModulePermissionResponse],
    summary="Grant a module to an employee",
    description="The company must have the module enabled.",
)
async def grant_employee_module(
    employee_id: str,
    module_slug: str,
    data: EmployeePermissions,
    owner: OwnerUser,
    db: DbSession,
) -> ApiResponse[UserModulePermissionResponse]:
    grant = await ModuleService(db).grant_module_to_employee(owner, employee_id, module_slug, data.permissions)
    return ApiResponse(data=UserModulePermissionResponse.model_validate(grant))


@router.patch(
    "/employees/{employee_id}/modules/{module_slug}",
    response_model=ApiResponse[UserModulePermissionResponse],
    summary="Change an employee's module permissions",
)
async def update_employee_module(
    employee_id: str,
    module_slug: str,
    data: EmployeePermissions,
    owner: OwnerUser,
    db: DbSession,
) -> ApiResponse[UserModulePermissionResponse]:
    grant = await ModuleService(db).update_employee_module_permissions(
        owner, employee_id, module_slug, data.permissions,
    )
    return ApiResponse(data=UserModulePermissionResponse.model_validate(grant))


@router.delete(
    "/employees/{employee_id}/modules/{module_slug}",
    status_code=204,
    summary="Revoke a module from an employee",
)
async def revoke_employee_module(
    employee_id: str,
    module_slug: str,
    owner: OwnerUser,
    db: DbSession,
) -> None:
    await ModuleService(db).revoke_module_from_employee(owner, employee_id, module_slug)
