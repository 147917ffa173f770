"""
Client Repositories.

Clients, change log, custom fields and icons.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Select, String, cast, delete, func, or_, select
from sqlalchemy.orm import InstrumentedAttribute

from accounting.backend.core.utils import escape_like
from accounting.backend.models.client import (
    ChangeLog,
    Client,
    ClientCustomFieldValue,
    ClientFieldDefinition,
    ClientIcon,
    ClientIconAssignment,
)
from accounting.backend.models.enums import AmlGroup, EmploymentType, TaxScheme, VatStatus, ZusStatus
from accounting.backend.repositories.base import BaseRepository


@dataclass
class ClientFilters:
    search: str | None = None
    employment_type: EmploymentType | None = None
    vat_status: VatStatus | None = None
    tax_scheme: TaxScheme | None = None
    zus_status: ZusStatus | None = None
    aml_group: AmlGroup | None = None
    gtu_code: str | None = None
    receive_email_copy: bool | None = None
    is_active: bool = True


class ClientRepository(BaseRepository[Client]):
    model = Client
    entity_name = "Client"

    def _filtered(self, company_id: str, filters: ClientFilters) -> Select:
        stmt = select(Client).where(
            Client.company_id == company_id,
            Client.is_active.is_(filters.is_active),
        )
        if filters.search:
            pattern = f"%{escape_like(filters.search)}%"
            stmt = stmt.where(
                or_(
                    Client.name.ilike(pattern, escape="\\"),
                    Client.nip.ilike(pattern, escape="\\"),
                    Client.email.ilike(pattern, escape="\\"),
                )
            )
        for column, value in (
            (Client.employment_type, filters.employment_type),
            (Client.vat_status, filters.vat_status),
            (Client.tax_scheme, filters.tax_scheme),
            (Client.zus_status, filters.zus_status),
            (Client.aml_group, filters.aml_group),
        ):
            if value is not None:
                stmt = stmt.where(column == value)
        if filters.gtu_code:
            # JSON list serialized as text on both PostgreSQL and SQLite
            token = f'%"{escape_like(filters.gtu_code)}"%'
            stmt = stmt.where(cast(Client.gtu_codes, String).like(token, escape="\\"))
        if filters.receive_email_copy is not None:
            stmt = stmt.where(Client.receive_email_copy.is_(filters.receive_email_copy))
        return stmt.order_by(Client.name)

    async def search(
        self,
        company_id: str,
        filters: ClientFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[Client], int]:
        return await self._paginate(self._filtered(company_id, filters), limit, offset)

    async def list_filtered(self, company_id: str, filters: ClientFilters) -> list[Client]:
        result = await self.session.execute(self._filtered(company_id, filters))
        return list(result.scalars().all())

    async def count_by_active(self, company_id: str) -> dict[bool, int]:
        result = await self.session.execute(
            select(Client.is_active, func.count()).where(Client.company_id == company_id).group_by(Client.is_active)
        )
        return dict(result.tuples().all())

    async def count_active_by(self, column: InstrumentedAttribute, company_id: str) -> dict[Any, int]:
        """Active clients per value of `column`. Clients with no value are left out."""
        result = await self.session.execute(
            select(column, func.count())
            .where(Client.company_id == company_id, Client.is_active.is_(True), column.is_not(None))
            .group_by(column)
        )
        return dict(result.tuples().all())

    async def count_created_since(self, company_id: str, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Client).where(Client.company_id == company_id, Client.created_at >= since)
        )
        return result.scalar_one()

    async def names_by_ids(self, ids: list[str], company_id: str) -> dict[str, str]:
        if not ids:
            return {}
        result = await self.session.execute(
            select(Client.id, Client.name).where(Client.id.in_(ids), Client.company_id == company_id)
        )
        return dict(result.tuples().all())


class ChangeLogRepository(BaseRepository[ChangeLog]):
    model = ChangeLog

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[ChangeLog]:
        result = await self.session.execute(
            select(ChangeLog)
            .where(ChangeLog.entity_type == entity_type, ChangeLog.entity_id == entity_id)
            .order_by(ChangeLog.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_company(
        self,
        company_id: str,
        entity_type: str,
        limit: int,
        offset: int,
    ) -> tuple[list[ChangeLog], int]:
        stmt = (
            select(ChangeLog)
            .where(ChangeLog.company_id == company_id, ChangeLog.entity_type == entity_type)
            .order_by(ChangeLog.created_at.desc())
        )
        return await self._paginate(stmt, limit, offset)


class ClientFieldDefinitionRepository(BaseRepository[ClientFieldDefinition]):
    model = ClientFieldDefinition
    entity_name = "Field definition"

    async def list_active(self, company_id: str) -> list[ClientFieldDefinition]:
        result = await self.session.execute(
            select(ClientFieldDefinition)
            .where(
                ClientFieldDefinition.company_id == company_id,
                ClientFieldDefinition.is_active.is_(True),
            )
            .order_by(ClientFieldDefinition.display_order, ClientFieldDefinition.label)
        )
        return list(result.scalars().all())

    async def name_taken(self, company_id: str, name: str, exclude_id: str | None = None) -> bool:
        stmt = select(ClientFieldDefinition.id).where(
            ClientFieldDefinition.company_id == company_id,
            ClientFieldDefinition.name == name,
            ClientFieldDefinition.is_active.is_(True),
        )
        if exclude_id:
            stmt = stmt.where(ClientFieldDefinition.id != exclude_id)
        return (await self.session.execute(stmt)).first() is not None

    async def get_active_in_company(self, id: str, company_id: str) -> ClientFieldDefinition:
        definition = await self.get_in_company(id, company_id)
        if not definition.is_active:
            raise self._not_found(id)
        return definition


class ClientCustomFieldValueRepository(BaseRepository[ClientCustomFieldValue]):
    model = ClientCustomFieldValue
    entity_name = "Custom field value"

    async def get_for(self, client_id: str, definition_id: str) -> ClientCustomFieldValue | None:
        result = await self.session.execute(
            select(ClientCustomFieldValue).where(
                ClientCustomFieldValue.client_id == client_id,
                ClientCustomFieldValue.field_definition_id == definition_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_active_for_client(self, client_id: str) -> list[ClientCustomFieldValue]:
        result = await self.session.execute(
            select(ClientCustomFieldValue).where(
                ClientCustomFieldValue.client_id == client_id,
                ClientCustomFieldValue.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def count_for_definition(self, definition_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).where(
                ClientCustomFieldValue.field_definition_id == definition_id,
                ClientCustomFieldValue.is_active.is_(True),
            )
        )
        return result.scalar_one()

    async def list_for_definition(self, definition_id: str) -> list[ClientCustomFieldValue]:
        result = await self.session.execute(
            select(ClientCustomFieldValue).where(
                ClientCustomFieldValue.field_definition_id == definition_id,
            )
        )
        return list(result.scalars().all())

    async def delete_for_definition(self, definition_id: str) -> None:
        await self.session.execute(
            delete(ClientCustomFieldValue)
            .where(ClientCustomFieldValue.field_definition_id == definition_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()

    async def delete_for_client(self, client_id: str) -> None:
        await self.session.execute(
            delete(ClientCustomFieldValue)
            .where(ClientCustomFieldValue.client_id == client_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()


class ClientIconRepository(BaseRepository[ClientIcon]):
    model = ClientIcon
    entity_name = "Icon"

    async def list_active(self, company_id: str) -> list[ClientIcon]:
        result = await self.session.execute(
            select(ClientIcon)
            .where(ClientIcon.company_id == company_id, ClientIcon.is_active.is_(True))
            .order_by(ClientIcon.name)
        )
        return list(result.scalars().all())

    async def get_active_in_company(self, id: str, company_id: str) -> ClientIcon:
        icon = await self.get_in_company(id, company_id)
        if not icon.is_active:
            raise self._not_found(id)
        return icon

    async def list_for_client(self, client_id: str) -> list[ClientIcon]:
        result = await self.session.execute(
            select(ClientIcon)
            .join(ClientIconAssignment, ClientIconAssignment.icon_id == ClientIcon.id)
            .where(ClientIconAssignment.client_id == client_id, ClientIcon.is_active.is_(True))
            .order_by(ClientIcon.name)
        )
        return list(result.scalars().all())


class ClientIconAssignmentRepository(BaseRepository[ClientIconAssignment]):
    model = ClientIconAssignment

    async def get_for(self, client_id: str, icon_id: str) -> ClientIconAssignment | None:
        result = await self.session.execute(
            select(ClientIconAssignment).where(
                ClientIconAssignment.client_id == client_id,
                ClientIconAssignment.icon_id == icon_id,
            )
        )
        return result.scalar_one_or_none()

    async def delete_for_client(self, client_id: str) -> None:
        await self.session.execute(
            delete(ClientIconAssignment)
            .where(ClientIconAssignment.client_id == client_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
