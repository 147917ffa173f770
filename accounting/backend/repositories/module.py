"""
Module Registry Repositories.
"""

from sqlalchemy import delete, select

from accounting.backend.models.module import CompanyModuleAccess, Module, UserModulePermission
from accounting.backend.repositories.base import BaseRepository


class ModuleRepository(BaseRepository[Module]):
    model = Module
    entity_name = "Module"

    async def get_by_slug(self, slug: str) -> Module | None:
        result = await self.session.execute(select(Module).where(Module.slug == slug))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Module]:
        result = await self.session.execute(select(Module).order_by(Module.created_at.desc()))
        return list(result.scalars().all())

    async def list_active(self) -> list[Module]:
        result = await self.session.execute(
            select(Module).where(Module.is_active.is_(True)).order_by(Module.name)
        )
        return list(result.scalars().all())


class CompanyModuleAccessRepository(BaseRepository[CompanyModuleAccess]):
    model = CompanyModuleAccess
    entity_name = "Company module access"

    async def get_for(self, company_id: str, module_id: str) -> CompanyModuleAccess | None:
        result = await self.session.execute(
            select(CompanyModuleAccess).where(
                CompanyModuleAccess.company_id == company_id,
                CompanyModuleAccess.module_id == module_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_company(self, company_id: str) -> list[CompanyModuleAccess]:
        result = await self.session.execute(
            select(CompanyModuleAccess)
            .where(CompanyModuleAccess.company_id == company_id)
            .order_by(CompanyModuleAccess.created_at)
        )
        return list(result.scalars().all())

    async def list_enabled_active_modules(self, company_id: str) -> list[Module]:
        """Active modules the company has enabled."""
        result = await self.session.execute(
            select(Module)
            .join(CompanyModuleAccess, CompanyModuleAccess.module_id == Module.id)
            .where(
                CompanyModuleAccess.company_id == company_id,
                CompanyModuleAccess.is_enabled.is_(True),
                Module.is_active.is_(True),
            )
            .order_by(Module.name)
        )
        return list(result.scalars().all())

    async def is_enabled(self, company_id: str, module_id: str) -> bool:
        result = await self.session.execute(
            select(CompanyModuleAccess.id).where(
                CompanyModuleAccess.company_id == company_id,
                CompanyModuleAccess.module_id == module_id,
                CompanyModuleAccess.is_enabled.is_(True),
            )
        )
        return result.first() is not None

    async def list_disabled(self) -> list[CompanyModuleAccess]:
        result = await self.session.execute(
            select(CompanyModuleAccess).where(CompanyModuleAccess.is_enabled.is_(False))
        )
        return list(result.scalars().all())


class UserModulePermissionRepository(BaseRepository[UserModulePermission]):
    model = UserModulePermission
    entity_name = "Module permission"

    async def get_for(self, user_id: str, module_id: str) -> UserModulePermission | None:
        result = await self.session.execute(
            select(UserModulePermission).where(
                UserModulePermission.user_id == user_id,
                UserModulePermission.module_id == module_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[UserModulePermission]:
        result = await self.session.execute(
            select(UserModulePermission).where(UserModulePermission.user_id == user_id)
        )
        return list(result.scalars().all())

    async def delete_for_users(self, user_ids: list[str], module_id: str) -> int:
        """Delete the module grants of the given users. Returns the deleted row count."""
        if not user_ids:
            return 0
        result = await self.session.execute(
            delete(UserModulePermission)
            .where(
                UserModulePermission.user_id.in_(user_ids),
                UserModulePermission.module_id == module_id,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount or 0
