"""
Client Icon Service.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import NotFoundError
from accounting.backend.models.client import ClientIcon, ClientIconAssignment
from accounting.backend.models.user import User
from accounting.backend.repositories.client import (
    ClientIconAssignmentRepository,
    ClientIconRepository,
    ClientRepository,
)
from accounting.backend.schemas.client import IconCreate, IconUpdate
from accounting.backend.services.base import BaseService
from accounting.backend.services.tenant import TenantService


class ClientIconService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ClientIconRepository(session)
        self.assignments = ClientIconAssignmentRepository(session)
        self.clients = ClientRepository(session)
        self.tenant = TenantService(session)

    async def list_icons(self, user: User) -> list[ClientIcon]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.list_active(company_id)

    async def get_icon(self, user: User, icon_id: str) -> ClientIcon:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_active_in_company(icon_id, company_id)

    async def create_icon(self, user: User, data: IconCreate) -> ClientIcon:
        company_id = await self.tenant.get_effective_company_id(user)
        icon = await self._execute_db_operation(
            "create icon",
            self.repo.create(**data.model_dump(), company_id=company_id, created_by_id=user.id),
        )
        self._log_operation("Icon created", icon_id=icon.id)
        return icon

    async def update_icon(self, user: User, icon_id: str, data: IconUpdate) -> ClientIcon:
        icon = await self.get_icon(user, icon_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k == "color"}
        if not changes:
            return icon
        return await self.repo.update_instance(icon, **changes)

    async def delete_icon(self, user: User, icon_id: str) -> None:
        icon = await self.get_icon(user, icon_id)
        await self.repo.update_instance(icon, is_active=False)
        self._log_operation("Icon deactivated", icon_id=icon.id)

    # Assignments

    async def get_client_icons(self, user: User, client_id: str) -> list[ClientIcon]:
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        return await self.repo.list_for_client(client.id)

    async def assign(self, user: User, client_id: str, icon_id: str) -> ClientIconAssignment:
        """Assigning an icon twice returns the existing assignment."""
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        icon = await self.repo.get_active_in_company(icon_id, company_id)

        existing = await self.assignments.get_for(client.id, icon.id)
        if existing is not None:
            return existing
        return await self._execute_db_operation(
            "assign icon", self.assignments.create(client_id=client.id, icon_id=icon.id),
        )

    async def unassign(self, user: User, client_id: str, icon_id: str) -> None:
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        existing = await self.assignments.get_for(client.id, icon_id)
        if existing is None:
            raise NotFoundError("Icon is not assigned to this client")
        await self.assignments.delete_instance(existing)

    async def set_client_icons(self, user: User, client_id: str, icon_ids: list[str]) -> list[ClientIcon]:
        """Replace all assignments. Every icon is checked before any change is made."""
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        icons = [
            await self.repo.get_active_in_company(icon_id, company_id)
            for icon_id in dict.fromkeys(icon_ids)
        ]

        await self.assignments.delete_for_client(client.id)
        for icon in icons:
            await self.assignments.create(client_id=client.id, icon_id=icon.id)

        self._log_operation("Client icons replaced", client_id=client.id, count=len(icons))
        return await self.repo.list_for_client(client.id)
