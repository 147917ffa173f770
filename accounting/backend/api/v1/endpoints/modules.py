"""
Modules API Endpoints.

Module registry, permission management and manifest discovery. Static
paths are declared before `/{identifier}` so they are not captured by it.
"""

from fastapi import APIRouter

from accounting.backend.core.dependencies import AdminUser, CurrentUser, DbSession, OwnerUser
from accounting.backend.models.module import CompanyModuleAccess
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.module import (
    CompanyModuleAccessResponse,
    DiscoveryStats,
    ManagePermissionRequest,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
    OrphanCleanupResult,
    RevokePermissionRequest,
    SyncResult,
    UserModulePermissionResponse,
)
from accounting.backend.services.module_discovery import get_module_discovery
from accounting.backend.services.modules import ModuleService

router = APIRouter()


def _permission_response(
    grant: object,
) -> CompanyModuleAccessResponse | UserModulePermissionResponse:
    if isinstance(grant, CompanyModuleAccess):
        return CompanyModuleAccessResponse.model_validate(grant)
    return UserModulePermissionResponse.model_validate(grant)


@router.get(
    "",
    response_model=ApiResponse[list[ModuleResponse]],
    summary="List modules",
    description="Admins see every module; other users see the modules available to them.",
)
async def list_modules(user: CurrentUser, db: DbSession) -> ApiResponse[list[ModuleResponse]]:
    modules = await ModuleService(db).get_modules_for_user(user)
    return ApiResponse(data=[ModuleResponse.model_validate(m) for m in modules])


@router.post(
    "",
    response_model=ApiResponse[ModuleResponse],
    status_code=201,
    summary="Create a module",
)
async def create_module(data: ModuleCreate, admin: AdminUser, db: DbSession) -> ApiResponse[ModuleResponse]:
    module = await ModuleService(db).create(data)
    return ApiResponse(data=ModuleResponse.model_validate(module))


# Permissions


@router.post(
    "/permissions",
    response_model=ApiResponse[CompanyModuleAccessResponse | UserModulePermissionResponse],
    summary="Grant a module permission",
    description="Company targets require ADMIN, employee targets require COMPANY_OWNER.",
)
async def manage_permission(
    data: ManagePermissionRequest,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[CompanyModuleAccessResponse | UserModulePermissionResponse]:
    grant = await ModuleService(db).manage_permission(user, data)
    return ApiResponse(data=_permission_response(grant))


@router.patch(
    "/permissions",
    response_model=ApiResponse[CompanyModuleAccessResponse | UserModulePermissionResponse],
    summary="Change a module permission",
)
async def update_permission(
    data: ManagePermissionRequest,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[CompanyModuleAccessResponse | UserModulePermissionResponse]:
    grant = await ModuleService(db).update_permission(user, data)
    return ApiResponse(data=_permission_response(grant))


@router.delete("/permissions", status_code=204, summary="Revoke a module permission")
async def revoke_permission(data: RevokePermissionRequest, user: CurrentUser, db: DbSession) -> None:
    await ModuleService(db).revoke_permission(user, data)


@router.get(
    "/employee/{employee_id}",
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


@router.get(
    "/companies/{company_id}",
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
    "/cleanup/orphaned-permissions",
    response_model=ApiResponse[OrphanCleanupResult],
    summary="Remove orphaned employee permissions",
    description="Deletes employee grants for modules their company no longer has enabled.",
)
async def cleanup_orphaned_permissions(admin: AdminUser, db: DbSession) -> ApiResponse[OrphanCleanupResult]:
    result = await ModuleService(db).cleanup_orphaned_permissions()
    return ApiResponse(data=result)


# Discovery


@router.post(
    "/discovery/reload",
    response_model=ApiResponse[SyncResult],
    summary="Rescan module manifests",
    description="Clears the manifest cache, scans the modules directory and syncs the database.",
)
async def reload_modules(admin: AdminUser, db: DbSession) -> ApiResponse[SyncResult]:
    result = await get_module_discovery().reload_modules(db)
    return ApiResponse(data=result)


@router.get(
    "/discovery/stats",
    response_model=ApiResponse[DiscoveryStats],
    summary="Discovered manifests",
)
async def discovery_stats(admin: AdminUser) -> ApiResponse[DiscoveryStats]:
    discovery = get_module_discovery()
    await discovery.discover_modules()
    return ApiResponse(data=discovery.get_discovery_stats())


# Single module


@router.get(
    "/{identifier}",
    response_model=ApiResponse[ModuleResponse],
    summary="Get a module",
    description="Look up by id or slug.",
)
async def get_module(identifier: str, user: CurrentUser, db: DbSession) -> ApiResponse[ModuleResponse]:
    module = await ModuleService(db).get_module_by_identifier(identifier, user)
    return ApiResponse(data=ModuleResponse.model_validate(module))


@router.patch("/{module_id}", response_model=ApiResponse[ModuleResponse], summary="Update a module")
async def update_module(
    module_id: str,
    data: ModuleUpdate,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[ModuleResponse]:
    module = await ModuleService(db).update(module_id, data)
    return ApiResponse(data=ModuleResponse.model_validate(module))


@router.delete("/{module_id}", status_code=204, summary="Deactivate a module")
async def delete_module(module_id: str, admin: AdminUser, db: DbSession) -> None:
    await ModuleService(db).delete(module_id)
