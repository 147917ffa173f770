"""
Module Service.

Module registry administration, company module access and employee
permission grants.

Revoking a module from a company also removes the grants of that
company's employees. Both writes run in the request transaction, so the
revoke lands completely or not at all.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.config import get_app_config
from accounting.backend.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ModuleAccessDeniedError,
    NotFoundError,
    ValidationError,
)
from accounting.backend.core.utils import is_uuid
from accounting.backend.models.enums import ModuleSource, PermissionTargetType, UserRole
from accounting.backend.models.module import CompanyModuleAccess, Module, UserModulePermission
from accounting.backend.models.user import Company, User
from accounting.backend.repositories.module import (
    CompanyModuleAccessRepository,
    ModuleRepository,
    UserModulePermissionRepository,
)
from accounting.backend.repositories.user import CompanyRepository, UserRepository
from accounting.backend.schemas.module import (
    ManagePermissionRequest,
    ModuleCreate,
    ModuleUpdate,
    OrphanCleanupEntry,
    OrphanCleanupResult,
    RevokePermissionRequest,
)
from accounting.backend.services.base import BaseService
from accounting.backend.services.module_discovery import get_module_discovery
from accounting.backend.services.notifications import NotificationService
from accounting.backend.services.rbac import RBACService


class ModuleService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ModuleRepository(session)
        self.access = CompanyModuleAccessRepository(session)
        self.permissions = UserModulePermissionRepository(session)
        self.companies = CompanyRepository(session)
        self.users = UserRepository(session)
        self.rbac = RBACService(session)
        self.notifications = NotificationService(session)

    # Registry

    async def find_all(self) -> list[Module]:
        return await self.repo.list_all()

    async def get_modules_for_user(self, user: User) -> list[Module]:
        if user.role == UserRole.ADMIN:
            return await self.repo.list_all()
        return await self.rbac.get_available_modules(user)

    async def get_module_by_identifier(self, identifier: str, user: User) -> Module:
        """
        Look a module up by id (UUID-shaped identifier) or slug.

        Raises:
            NotFoundError: If no module matches
            ModuleAccessDeniedError: If a non-admin cannot access it
        """
        if is_uuid(identifier):
            module = await self.repo.get_by_id_or_none(identifier)
        else:
            module = await self.repo.get_by_slug(identifier)
        if module is None:
            raise NotFoundError("Module not found", details={"identifier": identifier})

        if user.role != UserRole.ADMIN and not await self.rbac.has_module_access(user, module.slug):
            raise ModuleAccessDeniedError(module.slug)
        return module

    async def get_module_by_slug_direct(self, slug: str) -> Module:
        module = await self.repo.get_by_slug(slug)
        if module is None or not module.is_active:
            raise NotFoundError(f"Module '{slug}' not found", details={"slug": slug})
        return module

    async def create(self, data: ModuleCreate) -> Module:
        if await self.repo.get_by_slug(data.slug):
            raise ConflictError(f"Module '{data.slug}' already exists", details={"slug": data.slug})

        values = data.model_dump()
        if values["permissions"] is None:
            values["permissions"] = list(get_app_config().modules.default_permissions)
        unknown = set(values["default_permissions"]) - set(values["permissions"])
        if unknown:
            raise ValidationError(
                "Default permissions must be a subset of the module permissions",
                details={"unknown": sorted(unknown)},
            )

        module = await self._execute_db_operation(
            "create module",
            self.repo.create(**values, source=ModuleSource.LEGACY),
        )
        self._log_operation("Module created", slug=module.slug)
        return module

    async def update(self, module_id: str, data: ModuleUpdate) -> Module:
        module = await self.repo.get_by_id(module_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not changes:
            return module
        self._log_operation("Updating module", slug=module.slug, fields=sorted(changes))
        return await self.repo.update_instance(module, **changes)

    async def delete(self, module_id: str) -> None:
        module = await self.repo.get_by_id(module_id)
        await self.repo.update_instance(module, is_active=False)
        self._log_operation("Module deactivated", slug=module.slug)

    # Company access

    async def get_company_modules(self, company_id: str) -> list[CompanyModuleAccess]:
        await self.companies.get_by_id(company_id)
        return await self.access.list_for_company(company_id)

    async def _notify_owner(
        self,
        company: Company,
        type: str,
        title: str,
        module: Module,
        actor: User | None,
    ) -> None:
        if not company.owner_id:
            return
        await self.notifications.notify(
            [company.owner_id],
            company.id,
            type,
            title,
            data={"module_slug": module.slug, "module_id": module.id},
            actor_id=actor.id if actor else None,
        )

    async def grant_module_to_company(
        self,
        company_id: str,
        module_id: str,
        actor: User | None = None,
    ) -> CompanyModuleAccess:
        company = await self.companies.get_by_id(company_id)
        module = await self.repo.get_by_id(module_id)

        access = await self.access.get_for(company.id, module.id)
        if access is None:
            access = await self._execute_db_operation(
                "grant module",
                self.access.create(company_id=company.id, module_id=module.id, is_enabled=True),
            )
        elif not access.is_enabled:
            access = await self.access.update_instance(access, is_enabled=True)

        self._log_operation("Module granted to company", company_id=company.id, slug=module.slug)
        await self._notify_owner(
            company, "module.granted", f"Module {module.name} has been enabled", module, actor,
        )
        return access

    async def revoke_module_from_company(
        self,
        company_id: str,
        module_id: str,
        actor: User | None = None,
    ) -> int:
        """
        Disable a module for a company and drop its employees' grants.

        Returns:
            Number of employee permission rows deleted

        Raises:
            NotFoundError: If the company never had access to the module
        """
        company = await self.companies.get_by_id(company_id)
        access = await self.access.get_for(company.id, module_id)
        if access is None:
            raise NotFoundError("Company does not have access to this module")

        await self.access.update_instance(access, is_enabled=False)
        employee_ids = await self.users.list_company_employee_ids(company.id)
        deleted = await self.permissions.delete_for_users(employee_ids, module_id)

        self._log_operation(
            "Module revoked from company",
            company_id=company.id,
            slug=access.module.slug,
            deleted_permissions=deleted,
        )
        await self._notify_owner(
            company,
            "module.revoked",
            f"Module {access.module.name} has been disabled",
            access.module,
            actor,
        )
        return deleted

    async def cleanup_orphaned_permissions(self) -> OrphanCleanupResult:
        """Delete employee grants left behind on modules their company no longer has."""
        entries: list[OrphanCleanupEntry] = []
        for access in await self.access.list_disabled():
            employee_ids = await self.users.list_company_employee_ids(access.company_id)
            deleted = await self.permissions.delete_for_users(employee_ids, access.module_id)
            if not deleted:
                continue
            company = await self.companies.get_by_id(access.company_id)
            entries.append(
                OrphanCleanupEntry(
                    company_id=company.id,
                    company_name=company.name,
                    module_id=access.module_id,
                    module_name=access.module.name,
                    deleted_permissions=deleted,
                )
            )

        total = sum(entry.deleted_permissions for entry in entries)
        self._log_operation("Orphaned permissions cleaned", deleted_count=total)
        return OrphanCleanupResult(deleted_count=total, companies=entries)

    # Employee permissions

    async def _owned_employee(self, owner: User, employee_id: str) -> User:
        if not owner.company_id:
            raise NotFoundError("User is not assigned to a company")
        employee = await self.users.get_company_user(
            employee_id, owner.company_id, role=UserRole.EMPLOYEE,
        )
        if employee is None:
            raise NotFoundError("Employee not found", details={"id": employee_id})
        return employee

    async def _enabled_module(self, company_id: str, module_slug: str) -> Module:
        module = await self.get_module_by_slug_direct(module_slug)
        if not await self.access.is_enabled(company_id, module.id):
            raise AuthorizationError(f"Company does not have access to module '{module_slug}'")
        return module

    @staticmethod
    def _check_permissions(module: Module, permissions: list[str]) -> list[str]:
        unknown = sorted(set(permissions) - set(module.permissions or []))
        if unknown:
            raise ValidationError(
                "Unknown permissions for module",
                details={"module": module.slug, "unknown": unknown},
            )
        return list(dict.fromkeys(permissions))

    @staticmethod
    def _default_permissions(module: Module) -> list[str]:
        defaults = get_module_discovery().get_default_permissions(module.slug) or module.default_permissions
        if not defaults:
            raise ValidationError("Module has no default permissions", details={"module": module.slug})
        return list(defaults)

    async def get_employee_modules(self, owner: User, employee_id: str) -> list[UserModulePermission]:
        employee = await self._owned_employee(owner, employee_id)
        grants = await self.permissions.list_for_user(employee.id)
        return [
            grant for grant in grants
            if await self.access.is_enabled(owner.company_id, grant.module_id)
        ]

    async def grant_module_to_employee(
        self,
        owner: User,
        employee_id: str,
        module_slug: str,
        permissions: list[str] | None = None,
    ) -> UserModulePermission:
        """
        Grant (or overwrite) an employee's permissions on a module.

        Without `permissions` the module's default permissions apply: the
        discovered manifest wins over the stored row.
        """
        employee = await self._owned_employee(owner, employee_id)
        module = await self._enabled_module(owner.company_id, module_slug)
        if not permissions:
            permissions = self._default_permissions(module)
        permissions = self._check_permissions(module, permissions)

        grant = await self.permissions.get_for(employee.id, module.id)
        if grant is None:
            grant = await self._execute_db_operation(
                "grant permission",
                self.permissions.create(
                    user_id=employee.id,
                    module_id=module.id,
                    permissions=permissions,
                    granted_by_id=owner.id,
                ),
            )
        else:
            grant = await self.permissions.update_instance(
                grant, permissions=permissions, granted_by_id=owner.id,
            )

        self._log_operation(
            "Module granted to employee",
            employee_id=employee.id,
            slug=module.slug,
            permissions=permissions,
        )
        await self.notifications.notify(
            [employee.id],
            owner.company_id,
            "permission.granted",
            f"You now have access to {module.name}",
            data={"module_slug": module.slug, "permissions": permissions},
            actor_id=owner.id,
        )
        return grant

    async def update_employee_module_permissions(
        self,
        owner: User,
        employee_id: str,
        module_slug: str,
        permissions: list[str],
    ) -> UserModulePermission:
        employee = await self._owned_employee(owner, employee_id)
        module = await self._enabled_module(owner.company_id, module_slug)
        grant = await self.permissions.get_for(employee.id, module.id)
        if grant is None:
            raise NotFoundError("Employee has no permissions for this module. Use grant endpoint instead")

        permissions = self._check_permissions(module, permissions)
        grant = await self.permissions.update_instance(
            grant, permissions=permissions, granted_by_id=owner.id,
        )
        await self.notifications.notify(
            [employee.id],
            owner.company_id,
            "permission.updated",
            f"Your permissions for {module.name} have changed",
            data={"module_slug": module.slug, "permissions": permissions},
            actor_id=owner.id,
        )
        return grant

    async def revoke_module_from_employee(self, owner: User, employee_id: str, module_slug: str) -> None:
        employee = await self._owned_employee(owner, employee_id)
        module = await self.get_module_by_slug_direct(module_slug)
        grant = await self.permissions.get_for(employee.id, module.id)
        if grant is None:
            raise NotFoundError("Employee has no permissions for this module")

        await self.permissions.delete_instance(grant)
        self._log_operation("Module revoked from employee", employee_id=employee.id, slug=module.slug)
        await self.notifications.notify(
            [employee.id],
            owner.company_id,
            "permission.revoked",
            f"Your access to {module.name} has been removed",
            data={"module_slug": module.slug},
            actor_id=owner.id,
        )

    # Dispatch on target type

    @staticmethod
    def _require_role(user: User, target_type: PermissionTargetType) -> None:
        expected = (
            UserRole.ADMIN if target_type == PermissionTargetType.COMPANY else UserRole.COMPANY_OWNER
        )
        if user.role != expected:
            raise AuthorizationError(
                f"Only {expected.value} users can manage {target_type.value} permissions"
            )

    @staticmethod
    def _require_employee_permissions(data: ManagePermissionRequest) -> list[str]:
        if not data.permissions:
            raise ValidationError("permissions are required when changing an employee grant")
        return data.permissions

    async def manage_permission(
        self,
        user: User,
        data: ManagePermissionRequest,
    ) -> CompanyModuleAccess | UserModulePermission:
        self._require_role(user, data.target_type)
        if data.target_type == PermissionTargetType.COMPANY:
            module = await self.get_module_by_slug_direct(data.module_slug)
            return await self.grant_module_to_company(data.target_id, module.id, actor=user)

        return await self.grant_module_to_employee(
            user, data.target_id, data.module_slug, data.permissions,
        )

    async def update_permission(
        self,
        user: User,
        data: ManagePermissionRequest,
    ) -> CompanyModuleAccess | UserModulePermission:
        self._require_role(user, data.target_type)
        if data.target_type == PermissionTargetType.COMPANY:
            module = await self.get_module_by_slug_direct(data.module_slug)
            return await self.grant_module_to_company(data.target_id, module.id, actor=user)

        return await self.update_employee_module_permissions(
            user, data.target_id, data.module_slug, self._require_employee_permissions(data),
        )

    async def revoke_permission(self, user: User, data: RevokePermissionRequest) -> None:
        self._require_role(user, data.target_type)
        if data.target_type == PermissionTargetType.COMPANY:
            module = await self.repo.get_by_slug(data.module_slug)
            if module is None:
                raise NotFoundError(f"Module '{data.module_slug}' not found")
            await self.revoke_module_from_company(data.target_id, module.id, actor=user)
            return

        await self.revoke_module_from_employee(user, data.target_id, data.module_slug)
