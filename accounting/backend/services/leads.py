"""
Lead Service.

Prospects tracked before they become clients. Conversion creates a regular
client through ClientService so the client change log and notifications
apply.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import ConflictError, NotFoundError
from accounting.backend.core.utils import utc_now
from accounting.backend.models.client import Client
from accounting.backend.models.enums import LeadStatus
from accounting.backend.models.offer import Lead
from accounting.backend.models.user import User
from accounting.backend.repositories.offer import LeadFilters, LeadRepository, OfferRepository
from accounting.backend.repositories.user import UserRepository
from accounting.backend.schemas.client import ClientCreate
from accounting.backend.schemas.lead import ConvertLeadRequest, LeadCreate, LeadStatistics, LeadUpdate
from accounting.backend.services.base import BaseService
from accounting.backend.services.clients import ClientService
from accounting.backend.services.tenant import TenantService


def conversion_rate(won: int, lost: int) -> float:
    """Percentage of closed items that were won, 0 when nothing is closed yet."""
    closed = won + lost
    if closed == 0:
        return 0.0
    return round(won / closed * 100, 2)


class LeadService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = LeadRepository(session)
        self.offers = OfferRepository(session)
        self.users = UserRepository(session)
        self.clients = ClientService(session)
        self.tenant = TenantService(session)

    async def _check_assignee(self, company_id: str, user_id: str) -> None:
        if await self.users.get_company_user(user_id, company_id) is None:
            raise NotFoundError("Assigned user not found", details={"id": user_id})

    async def find_all(
        self,
        user: User,
        filters: LeadFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Lead], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.search(company_id, filters, limit, offset)

    async def find_one(self, user: User, lead_id: str) -> Lead:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_in_company(lead_id, company_id)

    async def create(self, user: User, data: LeadCreate) -> Lead:
        company_id = await self.tenant.get_effective_company_id(user)
        if data.nip and await self.repo.nip_taken(company_id, data.nip):
            raise ConflictError(f"A lead with NIP {data.nip} already exists")
        if data.assigned_to_id:
            await self._check_assignee(company_id, data.assigned_to_id)

        lead = await self._execute_db_operation(
            "create lead",
            self.repo.create(
                **data.model_dump(),
                company_id=company_id,
                status=LeadStatus.NEW,
                created_by_id=user.id,
            ),
        )
        self._log_operation("Lead created", lead_id=lead.id, company_id=company_id)
        return lead

    async def update(self, user: User, lead_id: str, data: LeadUpdate) -> Lead:
        lead = await self.find_one(user, lead_id)
        if lead.status == LeadStatus.CONVERTED:
            raise ConflictError("A converted lead cannot be changed")

        changes = data.model_dump(exclude_unset=True)
        for key in ("name", "status"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        if changes.get("nip") and await self.repo.nip_taken(lead.company_id, changes["nip"], exclude_id=lead.id):
            raise ConflictError(f"A lead with NIP {changes['nip']} already exists")
        if changes.get("assigned_to_id"):
            await self._check_assignee(lead.company_id, changes["assigned_to_id"])
        if not changes:
            return lead

        self._log_operation("Updating lead", lead_id=lead.id, fields=sorted(changes))
        return await self._execute_db_operation(
            "update lead", self.repo.update_instance(lead, **changes, updated_by_id=user.id),
        )

    async def remove(self, user: User, lead_id: str) -> None:
        lead = await self.find_one(user, lead_id)
        if await self.offers.count_for_lead(lead.id):
            raise ConflictError("Lead has offers and cannot be deleted")
        await self.repo.delete_instance(lead)
        self._log_operation("Lead deleted", lead_id=lead.id)

    async def convert_to_client(
        self,
        user: User,
        lead_id: str,
        data: ConvertLeadRequest,
    ) -> tuple[Lead, Client]:
        lead = await self.find_one(user, lead_id)
        if lead.status == LeadStatus.CONVERTED:
            raise ConflictError("Lead has already been converted")

        client = await self.clients.create(
            user,
            ClientCreate(
                name=data.client_name or lead.name,
                nip=lead.nip,
                email=data.email or lead.email,
                phone=data.phone or lead.phone,
                description=lead.notes,
            ),
        )
        lead = await self.repo.update_instance(
            lead,
            status=LeadStatus.CONVERTED,
            converted_to_client_id=client.id,
            converted_at=utc_now(),
            updated_by_id=user.id,
        )
        self._log_operation("Lead converted", lead_id=lead.id, client_id=client.id)
        return lead, client

    async def get_statistics(self, user: User) -> LeadStatistics:
        company_id = await self.tenant.get_effective_company_id(user)
        counts = await self.repo.count_by_status(company_id)
        by_status = {status.value: counts.get(status, 0) for status in LeadStatus}
        return LeadStatistics(
            total=sum(by_status.values()),
            by_status=by_status,
            conversion_rate=conversion_rate(
                by_status[LeadStatus.CONVERTED.value], by_status[LeadStatus.LOST.value],
            ),
        )
