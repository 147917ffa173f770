"""
RBAC Service.

Answers "may this user use this module" by joining the user's role, the
company's module access and the employee's permission grants.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.models.enums import UserRole
from accounting.backend.models.module import Module
from accounting.backend.models.user import User
from accounting.backend.repositories.module import (
    CompanyModuleAccessRepository,
    ModuleRepository,
    UserModulePermissionRepository,
)
from accounting.backend.services.base import BaseService

MANAGER_ROLES = frozenset({UserRole.ADMIN, UserRole.COMPANY_OWNER})


class RBACService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.modules = ModuleRepository(session)
        self.access = CompanyModuleAccessRepository(session)
        self.permissions = UserModulePermissionRepository(session)

    async def _active_module(self, slug: str) -> Module | None:
        module = await self.modules.get_by_slug(slug)
        if module is None or not module.is_active:
            return None
        return module

    async def has_module_access(self, user: User, slug: str) -> bool:
        """
        Check whether the user can open a module at all.

        - ADMIN: the module exists and is active
        - COMPANY_OWNER: the company has the active module enabled
        - EMPLOYEE: as the owner, plus a permission row for the module
        """
        module = await self._active_module(slug)
        if module is None:
            return False
        if user.role == UserRole.ADMIN:
            return True
        if not user.company_id:
            return False
        if not await self.access.is_enabled(user.company_id, module.id):
            return False
        if user.role == UserRole.EMPLOYEE:
            return await self.permissions.get_for(user.id, module.id) is not None
        return True

    async def has_permission(self, user: User, slug: str, permission: str) -> bool:
        """Managers hold every permission of a module they can access."""
        if not await self.has_module_access(user, slug):
            return False
        if user.role in MANAGER_ROLES:
            return True

        module = await self._active_module(slug)
        grant = await self.permissions.get_for(user.id, module.id)
        return grant is not None and permission in (grant.permissions or [])

    async def get_available_modules(self, user: User) -> list[Module]:
        if user.role == UserRole.ADMIN:
            return await self.modules.list_active()
        if not user.company_id:
            return []

        enabled = await self.access.list_enabled_active_modules(user.company_id)
        if user.role == UserRole.COMPANY_OWNER:
            return enabled

        granted = {grant.module_id for grant in await self.permissions.list_for_user(user.id)}
        return [module for module in enabled if module.id in granted]
