"""
Offer Service.

Priced proposals for clients or leads. Each offer carries a snapshot of
its recipient, computed totals and an activity trail.
"""

from datetime import date, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import (
    InvalidStatusTransitionError,
    ValidationError,
)
from accounting.backend.core.utils import round_money, utc_now
from accounting.backend.gateway.adapters.smtp_imap import SmtpImapTransport
from accounting.backend.models.enums import LeadStatus, OfferActivityType, OfferStatus
from accounting.backend.models.offer import Offer, OfferActivity
from accounting.backend.models.user import User
from accounting.backend.repositories.client import ClientRepository
from accounting.backend.repositories.offer import (
    LeadRepository,
    OfferActivityRepository,
    OfferFilters,
    OfferRepository,
)
from accounting.backend.schemas.offer import (
    DuplicateOfferRequest,
    OfferCreate,
    OfferStatistics,
    OfferUpdate,
    SendOfferRequest,
    ServiceTerms,
)
from accounting.backend.services.base import BaseService
from accounting.backend.services.email import EmailService, TransportFactory
from accounting.backend.services.leads import conversion_rate
from accounting.backend.services.tenant import TenantService

DEFAULT_VALIDITY_DAYS = 30
EDITABLE_STATUSES = frozenset({OfferStatus.DRAFT, OfferStatus.READY})
SENDABLE_STATUSES = frozenset({OfferStatus.DRAFT, OfferStatus.READY, OfferStatus.SENT, OfferStatus.VIEWED})

STATUS_TRANSITIONS: dict[OfferStatus, frozenset[OfferStatus]] = {
    OfferStatus.DRAFT: frozenset({OfferStatus.READY, OfferStatus.CANCELLED}),
    OfferStatus.READY: frozenset({OfferStatus.DRAFT, OfferStatus.SENT, OfferStatus.CANCELLED}),
    OfferStatus.SENT: frozenset({
        OfferStatus.VIEWED,
        OfferStatus.ACCEPTED,
        OfferStatus.REJECTED,
        OfferStatus.EXPIRED,
        OfferStatus.CANCELLED,
    }),
    OfferStatus.VIEWED: frozenset({
        OfferStatus.ACCEPTED,
        OfferStatus.REJECTED,
        OfferStatus.EXPIRED,
        OfferStatus.CANCELLED,
    }),
    OfferStatus.ACCEPTED: frozenset(),
    OfferStatus.REJECTED: frozenset(),
    OfferStatus.EXPIRED: frozenset(),
    OfferStatus.CANCELLED: frozenset({OfferStatus.DRAFT}),
}


def validate_transition(current: OfferStatus, target: OfferStatus) -> None:
    if target not in STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransitionError("offer", current.value, target.value)


def format_offer_number(year: int, sequence: int) -> str:
    """format_offer_number(2025, 7) -> 'OF/2025/0007'"""
    return f"OF/{year}/{sequence:04d}"


def price_service_terms(terms: ServiceTerms | None, vat_rate: float) -> tuple[dict | None, float, float]:
    """
    Compute line amounts and totals.

    Returns the terms as stored (each item with its net_amount), the net
    total and the gross total.
    """
    if terms is None:
        return None, 0.0, 0.0

    stored = terms.model_dump()
    net = 0.0
    for item in stored["items"]:
        item["net_amount"] = round_money(item["unit_price"] * item["quantity"])
        net += item["unit_price"] * item["quantity"]
    net = round_money(net)
    return stored, net, round_money(net * (1 + vat_rate / 100))


class OfferService(BaseService):
    def __init__(
        self,
        session: AsyncSession,
        transport_factory: TransportFactory = SmtpImapTransport,
    ) -> None:
        super().__init__(session)
        self.repo = OfferRepository(session)
        self.activities = OfferActivityRepository(session)
        self.leads = LeadRepository(session)
        self.clients = ClientRepository(session)
        self.email = EmailService(session, transport_factory)
        self.tenant = TenantService(session)

    async def _log_activity(
        self,
        offer: Offer,
        user: User,
        activity_type: OfferActivityType,
        description: str,
        data: dict[str, Any] | None = None,
    ) -> OfferActivity:
        return await self.activities.create(
            offer_id=offer.id,
            activity_type=activity_type,
            description=description,
            activity_data=data,
            performed_by_id=user.id,
        )

    async def _next_number(self, company_id: str, year: int) -> str:
        prefix = f"OF/{year}/"
        last = await self.repo.last_sequence_with_prefix(company_id, prefix)
        return format_offer_number(year, (last or 0) + 1)

    async def _recipient_snapshot(
        self,
        company_id: str,
        client_id: str | None,
        lead_id: str | None,
    ) -> dict[str, Any]:
        """
        Raises:
            ValidationError: If neither a client nor a lead is given
            NotFoundError: If the recipient is not in the company
        """
        if client_id:
            client = await self.clients.get_in_company(client_id, company_id)
            return {
                "type": "client",
                "name": client.name,
                "nip": client.nip,
                "email": client.email,
                "phone": client.phone,
            }
        if lead_id:
            lead = await self.leads.get_in_company(lead_id, company_id)
            return {
                "type": "lead",
                "name": lead.name,
                "nip": lead.nip,
                "email": lead.email,
                "phone": lead.phone,
                "contact_person": lead.contact_person,
                "street": lead.street,
                "postal_code": lead.postal_code,
                "city": lead.city,
                "country": lead.country,
            }
        raise ValidationError("An offer needs a client or a lead as recipient")

    # Queries

    async def find_all(
        self,
        user: User,
        filters: OfferFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Offer], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.search(company_id, filters, limit, offset)

    async def find_one(self, user: User, offer_id: str) -> Offer:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_in_company(offer_id, company_id)

    async def get_activities(self, user: User, offer_id: str) -> list[OfferActivity]:
        offer = await self.find_one(user, offer_id)
        return await self.activities.list_for_offer(offer.id)

    async def get_statistics(self, user: User) -> OfferStatistics:
        company_id = await self.tenant.get_effective_company_id(user)
        summary = await self.repo.status_summary(company_id)
        by_status = {status.value: summary.get(status, (0, 0.0))[0] for status in OfferStatus}
        return OfferStatistics(
            total=sum(by_status.values()),
            by_status=by_status,
            total_value=round_money(sum(value for _, value in summary.values())),
            accepted_value=round_money(summary.get(OfferStatus.ACCEPTED, (0, 0.0))[1]),
            conversion_rate=conversion_rate(
                by_status[OfferStatus.ACCEPTED.value], by_status[OfferStatus.REJECTED.value],
            ),
        )

    # Commands

    async def create(self, user: User, data: OfferCreate) -> Offer:
        company_id = await self.tenant.get_effective_company_id(user)
        snapshot = await self._recipient_snapshot(company_id, data.client_id, data.lead_id)
        terms, net, gross = price_service_terms(data.service_terms, data.vat_rate)

        offer_date = data.offer_date or utc_now().date()
        valid_until = data.valid_until or offer_date + timedelta(
            days=data.validity_days or DEFAULT_VALIDITY_DAYS,
        )
        if valid_until < offer_date:
            raise ValidationError("valid_until cannot be before offer_date")

        offer = await self._execute_db_operation(
            "create offer",
            self.repo.create(
                company_id=company_id,
                offer_number=await self._next_number(company_id, offer_date.year),
                title=data.title,
                description=data.description,
                status=OfferStatus.DRAFT,
                client_id=data.client_id,
                lead_id=None if data.client_id else data.lead_id,
                recipient_snapshot=snapshot,
                service_terms=terms,
                vat_rate=data.vat_rate,
                total_net_amount=net,
                total_gross_amount=gross,
                offer_date=offer_date,
                valid_until=valid_until,
                created_by_id=user.id,
            ),
        )
        await self._log_activity(
            offer, user, OfferActivityType.CREATED, f"Offer {offer.offer_number} created",
        )
        self._log_operation("Offer created", offer_id=offer.id, offer_number=offer.offer_number)
        return offer

    async def update(self, user: User, offer_id: str, data: OfferUpdate) -> Offer:
        offer = await self.find_one(user, offer_id)
        if offer.status not in EDITABLE_STATUSES:
            raise ValidationError(f"Offer in status '{offer.status.value}' cannot be edited")

        requested = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        requested.pop("service_terms", None)
        if data.service_terms is not None or "vat_rate" in requested:
            vat_rate = requested.get("vat_rate", offer.vat_rate)
            if data.service_terms is not None:
                terms = data.service_terms
            elif offer.service_terms:
                terms = ServiceTerms.model_validate(offer.service_terms)
            else:
                terms = None
            stored, net, gross = price_service_terms(terms, vat_rate)
            requested.update(service_terms=stored, total_net_amount=net, total_gross_amount=gross)

        offer_date: date = requested.get("offer_date", offer.offer_date)
        if requested.get("valid_until", offer.valid_until) < offer_date:
            raise ValidationError("valid_until cannot be before offer_date")

        changes = self._diff(offer, requested)
        if not changes:
            return offer

        offer = await self.repo.update_instance(offer, **requested, updated_by_id=user.id)
        await self._log_activity(
            offer, user, OfferActivityType.UPDATED, "Offer updated", {"changes": changes},
        )
        self._log_operation("Offer updated", offer_id=offer.id, fields=sorted(changes))
        return offer

    async def update_status(
        self,
        user: User,
        offer_id: str,
        status: OfferStatus,
        reason: str | None = None,
    ) -> Offer:
        offer = await self.find_one(user, offer_id)
        previous = offer.status
        validate_transition(previous, status)

        offer = await self.repo.update_instance(offer, status=status, updated_by_id=user.id)
        await self._log_activity(
            offer,
            user,
            OfferActivityType.STATUS_CHANGED,
            f"Status changed from {previous.value} to {status.value}",
            {"from": previous.value, "to": status.value, "reason": reason},
        )
        self._log_operation("Offer status changed", offer_id=offer.id, old=previous.value, new=status.value)
        return offer

    async def remove(self, user: User, offer_id: str) -> None:
        offer = await self.find_one(user, offer_id)
        await self.repo.delete_instance(offer)
        self._log_operation("Offer deleted", offer_id=offer.id)

    async def send(self, user: User, offer_id: str, data: SendOfferRequest) -> Offer:
        """
        Email the offer with the company mailbox and mark it sent.

        Raises:
            ValidationError: If the company has no active email configuration
            InvalidStatusTransitionError: If the offer cannot move to sent
            ExternalServiceError: If SMTP delivery fails
        """
        offer = await self.find_one(user, offer_id)
        if offer.status not in SENDABLE_STATUSES:
            raise InvalidStatusTransitionError("offer", offer.status.value, OfferStatus.SENT.value)

        config = await self.email.repo.get_for_company(offer.company_id)
        if config is None or not config.is_active:
            raise ValidationError("Email not configured")

        subject = data.subject or f"Offer {offer.offer_number}: {offer.title}"
        body = data.body or self._default_body(offer)
        await self.email.deliver(config, [data.email], subject, body, data.cc)

        offer = await self.repo.update_instance(
            offer,
            status=OfferStatus.SENT,
            sent_at=utc_now(),
            sent_to_email=data.email,
            email_subject=subject,
            email_body=body,
            updated_by_id=user.id,
        )
        await self._log_activity(
            offer, user, OfferActivityType.EMAIL_SENT, f"Offer sent to {data.email}", {"email": data.email},
        )

        if offer.lead_id:
            lead = await self.leads.get_by_id_or_none(offer.lead_id)
            if lead is not None and lead.status in (LeadStatus.NEW, LeadStatus.CONTACTED, LeadStatus.QUALIFIED):
                await self.leads.update_instance(lead, status=LeadStatus.PROPOSAL_SENT)

        self._log_operation("Offer sent", offer_id=offer.id)
        return offer

    @staticmethod
    def _default_body(offer: Offer) -> str:
        lines = [
            f"Offer {offer.offer_number}: {offer.title}",
            "",
        ]
        if offer.description:
            lines += [offer.description, ""]
        for item in (offer.service_terms or {}).get("items", []):
            unit = f" {item['unit']}" if item.get("unit") else ""
            lines.append(f"- {item['name']}: {item['quantity']}{unit} x {item['unit_price']:.2f} = {item['net_amount']:.2f}")
        lines += [
            "",
            f"Net total: {offer.total_net_amount:.2f}",
            f"VAT {offer.vat_rate:g}%",
            f"Gross total: {offer.total_gross_amount:.2f}",
            f"Valid until: {offer.valid_until.isoformat()}",
        ]
        return "\n".join(lines)

    async def duplicate(self, user: User, offer_id: str, data: DuplicateOfferRequest) -> Offer:
        source = await self.find_one(user, offer_id)
        if data.client_id or data.lead_id:
            client_id, lead_id = data.client_id, data.lead_id
        else:
            client_id, lead_id = source.client_id, source.lead_id
        snapshot = await self._recipient_snapshot(source.company_id, client_id, lead_id)

        offer_date = utc_now().date()
        validity = source.valid_until - source.offer_date
        offer = await self._execute_db_operation(
            "duplicate offer",
            self.repo.create(
                company_id=source.company_id,
                offer_number=await self._next_number(source.company_id, offer_date.year),
                title=data.title or source.title,
                description=source.description,
                status=OfferStatus.DRAFT,
                client_id=client_id,
                lead_id=None if client_id else lead_id,
                recipient_snapshot=snapshot,
                service_terms=source.service_terms,
                vat_rate=source.vat_rate,
                total_net_amount=source.total_net_amount,
                total_gross_amount=source.total_gross_amount,
                offer_date=offer_date,
                valid_until=offer_date + validity,
                created_by_id=user.id,
            ),
        )
        await self._log_activity(
            offer,
            user,
            OfferActivityType.DUPLICATED,
            f"Duplicated from {source.offer_number}",
            {"source_offer_id": source.id},
        )
        self._log_operation("Offer duplicated", offer_id=offer.id, source_id=source.id)
        return offer
