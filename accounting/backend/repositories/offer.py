"""
Lead and Offer Repositories.
"""

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import Integer, cast, func, or_, select

from accounting.backend.core.utils import escape_like
from accounting.backend.models.enums import LeadSource, LeadStatus, OfferStatus
from accounting.backend.models.offer import Lead, Offer, OfferActivity
from accounting.backend.repositories.base import BaseRepository


@dataclass
class LeadFilters:
    search: str | None = None
    status: LeadStatus | None = None
    source: LeadSource | None = None
    assigned_to_id: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


@dataclass
class OfferFilters:
    search: str | None = None
    status: OfferStatus | None = None
    client_id: str | None = None
    lead_id: str | None = None
    offer_date_from: date | None = None
    offer_date_to: date | None = None
    min_amount: float | None = None
    max_amount: float | None = None


class LeadRepository(BaseRepository[Lead]):
    model = Lead
    entity_name = "Lead"

    async def search(
        self,
        company_id: str,
        filters: LeadFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[Lead], int]:
        stmt = select(Lead).where(Lead.company_id == company_id)
        if filters.search:
            pattern = f"%{escape_like(filters.search)}%"
            stmt = stmt.where(
                or_(
                    Lead.name.ilike(pattern, escape="\\"),
                    Lead.email.ilike(pattern, escape="\\"),
                    Lead.nip.ilike(pattern, escape="\\"),
                    Lead.contact_person.ilike(pattern, escape="\\"),
                )
            )
        if filters.status:
            stmt = stmt.where(Lead.status == filters.status)
        if filters.source:
            stmt = stmt.where(Lead.source == filters.source)
        if filters.assigned_to_id:
            stmt = stmt.where(Lead.assigned_to_id == filters.assigned_to_id)
        if filters.created_from:
            stmt = stmt.where(Lead.created_at >= filters.created_from)
        if filters.created_to:
            stmt = stmt.where(Lead.created_at <= filters.created_to)
        stmt = stmt.order_by(Lead.created_at.desc())
        return await self._paginate(stmt, limit, offset)

    async def nip_taken(self, company_id: str, nip: str, exclude_id: str | None = None) -> bool:
        stmt = select(Lead.id).where(Lead.company_id == company_id, Lead.nip == nip)
        if exclude_id:
            stmt = stmt.where(Lead.id != exclude_id)
        return (await self.session.execute(stmt)).first() is not None

    async def count_by_status(self, company_id: str) -> dict[LeadStatus, int]:
        result = await self.session.execute(
            select(Lead.status, func.count())
            .where(Lead.company_id == company_id)
            .group_by(Lead.status)
        )
        return {status: count for status, count in result.all()}


class OfferRepository(BaseRepository[Offer]):
    model = Offer
    entity_name = "Offer"

    async def search(
        self,
        company_id: str,
        filters: OfferFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[Offer], int]:
        stmt = select(Offer).where(Offer.company_id == company_id)
        if filters.search:
            pattern = f"%{escape_like(filters.search)}%"
            stmt = stmt.where(
                or_(
                    Offer.title.ilike(pattern, escape="\\"),
                    Offer.offer_number.ilike(pattern, escape="\\"),
                )
            )
        if filters.status:
            stmt = stmt.where(Offer.status == filters.status)
        if filters.client_id:
            stmt = stmt.where(Offer.client_id == filters.client_id)
        if filters.lead_id:
            stmt = stmt.where(Offer.lead_id == filters.lead_id)
        if filters.offer_date_from:
            stmt = stmt.where(Offer.offer_date >= filters.offer_date_from)
        if filters.offer_date_to:
            stmt = stmt.where(Offer.offer_date <= filters.offer_date_to)
        if filters.min_amount is not None:
            stmt = stmt.where(Offer.total_net_amount >= filters.min_amount)
        if filters.max_amount is not None:
            stmt = stmt.where(Offer.total_net_amount <= filters.max_amount)
        stmt = stmt.order_by(Offer.created_at.desc())
        return await self._paginate(stmt, limit, offset)

    async def last_sequence_with_prefix(self, company_id: str, prefix: str) -> int | None:
        """Highest numeric suffix among offer numbers starting with `prefix`."""
        sequence = cast(func.substr(Offer.offer_number, len(prefix) + 1), Integer)
        result = await self.session.execute(
            select(func.max(sequence)).where(
                Offer.company_id == company_id,
                Offer.offer_number.like(f"{escape_like(prefix)}%", escape="\\"),
            )
        )
        return result.scalar_one_or_none()

    async def count_for_lead(self, lead_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Offer).where(Offer.lead_id == lead_id)
        )
        return result.scalar_one()

    async def status_summary(self, company_id: str) -> dict[OfferStatus, tuple[int, float]]:
        """Per status: number of offers and the sum of their gross totals."""
        result = await self.session.execute(
            select(Offer.status, func.count(), func.coalesce(func.sum(Offer.total_gross_amount), 0))
            .where(Offer.company_id == company_id)
            .group_by(Offer.status)
        )
        return {status: (count, float(total)) for status, count, total in result.all()}


class OfferActivityRepository(BaseRepository[OfferActivity]):
    model = OfferActivity

    async def list_for_offer(self, offer_id: str) -> list[OfferActivity]:
        result = await self.session.execute(
            select(OfferActivity)
            .where(OfferActivity.offer_id == offer_id)
            .order_by(OfferActivity.created_at.desc())
        )
        return list(result.scalars().all())
