"""
Change Log Service.

Append-only audit trail of tracked entities.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.models.client import ChangeLog
from accounting.backend.models.enums import ChangeAction
from accounting.backend.repositories.client import ChangeLogRepository
from accounting.backend.services.base import BaseService


class ChangeLogService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ChangeLogRepository(session)

    async def log(
        self,
        entity_type: str,
        entity_id: str,
        action: ChangeAction,
        company_id: str,
        user_id: str | None,
        changes: dict[str, Any] | None = None,
    ) -> ChangeLog:
        entry = await self.repo.create(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            changes=changes or {},
            company_id=company_id,
            user_id=user_id,
        )
        self._log_debug("Change logged", entity_type=entity_type, entity_id=entity_id, action=action.value)
        return entry

    async def get_entity_history(self, entity_type: str, entity_id: str) -> list[ChangeLog]:
        return await self.repo.list_for_entity(entity_type, entity_id)

    async def get_company_history(
        self,
        company_id: str,
        entity_type: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ChangeLog], int]:
        return await self.repo.list_for_company(company_id, entity_type, limit, offset)
