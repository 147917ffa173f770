"""
Time Settings Service.

One settings row per company, created with defaults the first time it is
read.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import AuthorizationError
from accounting.backend.models.enums import UserRole
from accounting.backend.models.time_tracking import TimeSettings
from accounting.backend.models.user import User
from accounting.backend.repositories.time_tracking import TimeSettingsRepository
from accounting.backend.schemas.time_tracking import TimeSettingsUpdate
from accounting.backend.services.base import BaseService
from accounting.backend.services.tenant import TenantService

MANAGER_ROLES = frozenset({UserRole.ADMIN, UserRole.COMPANY_OWNER})

# Columns that must never be cleared by an explicit null in the request
_NON_NULLABLE = frozenset(TimeSettingsUpdate.model_fields) - {"default_hourly_rate"}


def is_manager(user: User) -> bool:
    return user.role in MANAGER_ROLES


class TimeSettingsService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = TimeSettingsRepository(session)
        self.tenant = TenantService(session)

    async def get_for_company(self, company_id: str) -> TimeSettings:
        settings = await self.repo.get_by_company(company_id)
        if settings is None:
            settings = await self._execute_db_operation(
                "create time settings", self.repo.create(company_id=company_id),
            )
            self._log_debug("Default time settings created", company_id=company_id)
        return settings

    async def get_settings(self, user: User) -> TimeSettings:
        return await self.get_for_company(await self.tenant.get_effective_company_id(user))

    async def update_settings(self, user: User, data: TimeSettingsUpdate) -> TimeSettings:
        """
        Raises:
            AuthorizationError: If the user is not an admin or company owner
        """
        if not is_manager(user):
            raise AuthorizationError("Only managers can change time tracking settings")

        settings = await self.get_settings(user)
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key not in _NON_NULLABLE
        }
        if not changes:
            return settings

        self._log_operation("Updating time settings", company_id=settings.company_id, fields=sorted(changes))
        return await self.repo.update_instance(settings, **changes, updated_by_id=user.id)
