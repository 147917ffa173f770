"""
Offer and Lead Models.

Sales pipeline: prospects (leads), priced offers sent to clients or leads,
and the activity trail of each offer.
"""

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accounting.backend.core.utils import utc_now
from accounting.backend.models.base import (
    Base,
    TimestampMixin,
    UUIDMixin,
    enum_column,
    money_column,
)
from accounting.backend.models.enums import LeadSource, LeadStatus, OfferActivityType, OfferStatus


class Lead(UUIDMixin, TimestampMixin, Base):
    """A prospective client."""

    __tablename__ = "leads"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    nip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    regon: Mapped[str | None] = mapped_column(String(20), nullable=True)
    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[LeadStatus] = mapped_column(
        enum_column(LeadStatus), default=LeadStatus.NEW, nullable=False, index=True,
    )
    source: Mapped[LeadSource | None] = mapped_column(enum_column(LeadSource), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_value: Mapped[float | None] = mapped_column(money_column(), nullable=True)
    assigned_to_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    converted_to_client_id: Mapped[str | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"), nullable=True,
    )
    converted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    updated_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )


class Offer(UUIDMixin, TimestampMixin, Base):
    """A priced proposal addressed to a client or a lead."""

    __tablename__ = "offers"
    __table_args__ = (
        UniqueConstraint("company_id", "offer_number", name="uq_offer_number"),
    )

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    offer_number: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[OfferStatus] = mapped_column(
        enum_column(OfferStatus), default=OfferStatus.DRAFT, nullable=False, index=True,
    )
    client_id: Mapped[str | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    lead_id: Mapped[str | None] = mapped_column(
        ForeignKey("leads.id", ondelete="RESTRICT"), nullable=True, index=True,
    )
    recipient_snapshot: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    service_terms: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    vat_rate: Mapped[float] = mapped_column(money_column(), default=23, nullable=False)
    total_net_amount: Mapped[float] = mapped_column(money_column(), default=0, nullable=False)
    total_gross_amount: Mapped[float] = mapped_column(money_column(), default=0, nullable=False)
    offer_date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    sent_to_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    updated_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Offer(number={self.offer_number!r}, status={self.status})>"


class OfferActivity(UUIDMixin, Base):
    __tablename__ = "offer_activities"

    offer_id: Mapped[str] = mapped_column(
        ForeignKey("offers.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    activity_type: Mapped[OfferActivityType] = mapped_column(
        enum_column(OfferActivityType), nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    activity_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    performed_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
