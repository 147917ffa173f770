"""
Client Service.

Company-scoped client registry with a change log and notifications to the
rest of the company.
"""

import csv
import enum
import io
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import ValidationError
from accounting.backend.core.utils import utc_now
from accounting.backend.models.client import ChangeLog, Client
from accounting.backend.models.enums import ChangeAction, EmploymentType, TaxScheme, VatStatus, ZusStatus
from accounting.backend.models.user import User
from accounting.backend.repositories.client import (
    ClientCustomFieldValueRepository,
    ClientFilters,
    ClientIconAssignmentRepository,
    ClientRepository,
)
from accounting.backend.repositories.user import UserRepository
from accounting.backend.schemas.client import ClientCreate, ClientStatistics, ClientUpdate
from accounting.backend.services.base import BaseService
from accounting.backend.services.changelog import ChangeLogService
from accounting.backend.services.notifications import NotificationService
from accounting.backend.services.tenant import TenantService

ENTITY_TYPE = "Client"

EXPORT_COLUMNS = (
    "name",
    "nip",
    "email",
    "phone",
    "employment_type",
    "vat_status",
    "tax_scheme",
    "zus_status",
    "aml_group",
    "gtu_codes",
    "company_start_date",
    "cooperation_start_date",
    "receive_email_copy",
    "description",
    "is_active",
)


def _snapshot(client: Client) -> dict[str, Any]:
    return {
        "name": client.name,
        "nip": client.nip,
        "email": client.email,
    }


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, list):
        return ";".join(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ClientService(BaseService):
    """Client CRUD. Every lookup is restricted to the caller's company."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ClientRepository(session)
        self.users = UserRepository(session)
        self.values = ClientCustomFieldValueRepository(session)
        self.assignments = ClientIconAssignmentRepository(session)
        self.tenant = TenantService(session)
        self.changelog = ChangeLogService(session)
        self.notifications = NotificationService(session)

    async def _notify_company(self, user: User, company_id: str, type: str, client: Client, title: str) -> None:
        colleagues = await self.users.list_company_users(company_id)
        await self.notifications.notify(
            [colleague.id for colleague in colleagues],
            company_id,
            type,
            title,
            data={"client_id": client.id, "client_name": client.name},
            action_url=f"/clients/{client.id}",
            actor_id=user.id,
        )

    async def find_all(
        self,
        user: User,
        filters: ClientFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Client], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.search(company_id, filters, limit, offset)

    async def find_one(self, user: User, client_id: str) -> Client:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_in_company(client_id, company_id)

    async def create(self, user: User, data: ClientCreate) -> Client:
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self._execute_db_operation(
            "create client",
            self.repo.create(
                **data.model_dump(),
                company_id=company_id,
                created_by_id=user.id,
            ),
        )
        await self.changelog.log(
            ENTITY_TYPE, client.id, ChangeAction.CREATE, company_id, user.id, _snapshot(client),
        )
        self._log_operation("Client created", client_id=client.id, company_id=company_id)
        await self._notify_company(user, company_id, "client.created", client, f"New client: {client.name}")
        return client

    async def update(self, user: User, client_id: str, data: ClientUpdate) -> Client:
        client = await self.find_one(user, client_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)
        if "gtu_codes" in changes and changes["gtu_codes"] is None:
            changes["gtu_codes"] = []
        if changes.get("receive_email_copy") is None:
            changes.pop("receive_email_copy", None)

        diff = self._diff(client, changes)
        if not diff:
            return client

        client = await self._execute_db_operation(
            "update client",
            self.repo.update_instance(client, **changes, updated_by_id=user.id),
        )
        await self.changelog.log(
            ENTITY_TYPE, client.id, ChangeAction.UPDATE, client.company_id, user.id, diff,
        )
        self._log_operation("Client updated", client_id=client.id, fields=sorted(diff))
        await self._notify_company(
            user, client.company_id, "client.updated", client, f"Client updated: {client.name}",
        )
        return client

    async def remove(self, user: User, client_id: str) -> None:
        client = await self.find_one(user, client_id)
        await self.repo.update_instance(client, is_active=False, updated_by_id=user.id)
        await self.changelog.log(
            ENTITY_TYPE, client.id, ChangeAction.DELETE, client.company_id, user.id, _snapshot(client),
        )
        self._log_operation("Client deactivated", client_id=client.id)
        await self._notify_company(
            user, client.company_id, "client.deleted", client, f"Client removed: {client.name}",
        )

    async def hard_delete(self, user: User, client_id: str) -> None:
        """Permanently delete a client with its custom field values and icon assignments."""
        client = await self.find_one(user, client_id)
        await self.values.delete_for_client(client.id)
        await self.assignments.delete_for_client(client.id)
        await self.changelog.log(
            ENTITY_TYPE, client.id, ChangeAction.DELETE, client.company_id, user.id,
            {**_snapshot(client), "permanent": True},
        )
        await self.repo.delete_instance(client)
        self._log_operation("Client deleted permanently", client_id=client_id)

    async def restore(self, user: User, client_id: str) -> Client:
        """
        Raises:
            ValidationError: If the client is active
        """
        client = await self.find_one(user, client_id)
        if client.is_active:
            raise ValidationError("Client is already active")

        client = await self.repo.update_instance(client, is_active=True, updated_by_id=user.id)
        await self.changelog.log(ENTITY_TYPE, client.id, ChangeAction.RESTORE, client.company_id, user.id)
        self._log_operation("Client restored", client_id=client.id)
        await self._notify_company(
            user, client.company_id, "client.restored", client, f"Client restored: {client.name}",
        )
        return client

    async def get_changelog(self, user: User, client_id: str) -> list[ChangeLog]:
        client = await self.find_one(user, client_id)
        return await self.changelog.get_entity_history(ENTITY_TYPE, client.id)

    async def get_company_changelog(
        self,
        user: User,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ChangeLog], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.changelog.get_company_history(company_id, ENTITY_TYPE, limit, offset)

    # Reporting

    async def get_statistics(self, user: User) -> ClientStatistics:
        company_id = await self.tenant.get_effective_company_id(user)
        by_active = await self.repo.count_by_active(company_id)

        def counts(enum_type: type[enum.Enum], rows: dict[Any, int]) -> dict[str, int]:
            return {member.value: rows.get(member, 0) for member in enum_type}

        now = utc_now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return ClientStatistics(
            total=sum(by_active.values()),
            active=by_active.get(True, 0),
            inactive=by_active.get(False, 0),
            by_employment_type=counts(
                EmploymentType, await self.repo.count_active_by(Client.employment_type, company_id)
            ),
            by_vat_status=counts(VatStatus, await self.repo.count_active_by(Client.vat_status, company_id)),
            by_tax_scheme=counts(TaxScheme, await self.repo.count_active_by(Client.tax_scheme, company_id)),
            by_zus_status=counts(ZusStatus, await self.repo.count_active_by(Client.zus_status, company_id)),
            added_this_month=await self.repo.count_created_since(company_id, month_start),
            added_last_30_days=await self.repo.count_created_since(company_id, now - timedelta(days=30)),
        )

    async def export_csv(self, user: User, filters: ClientFilters) -> str:
        """Clients matching `filters` as CSV with a header row, ordered by name."""
        company_id = await self.tenant.get_effective_company_id(user)
        clients = await self.repo.list_filtered(company_id, filters)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for client in clients:
            writer.writerow([_csv_value(getattr(client, column)) for column in EXPORT_COLUMNS])
        self._log_operation("Clients exported", company_id=company_id, count=len(clients))
        return buffer.getvalue()
