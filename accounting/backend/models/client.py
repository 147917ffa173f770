"""
Client Models.

Clients of an accounting office, their custom field definitions and
values, icons, and the generic change log.
"""

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accounting.backend.core.utils import utc_now
from accounting.backend.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, enum_column
from accounting.backend.models.enums import (
    AmlGroup,
    ChangeAction,
    CustomFieldType,
    EmploymentType,
    IconType,
    TaxScheme,
    VatStatus,
    ZusStatus,
)


class Client(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """A client of the company."""

    __tablename__ = "clients"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    nip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    company_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    cooperation_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    employment_type: Mapped[EmploymentType | None] = mapped_column(
        enum_column(EmploymentType), nullable=True,
    )
    vat_status: Mapped[VatStatus | None] = mapped_column(enum_column(VatStatus), nullable=True)
    tax_scheme: Mapped[TaxScheme | None] = mapped_column(enum_column(TaxScheme), nullable=True)
    zus_status: Mapped[ZusStatus | None] = mapped_column(enum_column(ZusStatus), nullable=True)
    aml_group: Mapped[AmlGroup | None] = mapped_column(enum_column(AmlGroup), nullable=True)
    gtu_codes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    receive_email_copy: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    updated_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.name!r})>"


class ChangeLog(UUIDMixin, Base):
    """Audit entry for a change to a tracked entity."""

    __tablename__ = "change_logs"

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    action: Mapped[ChangeAction] = mapped_column(enum_column(ChangeAction), nullable=False)
    changes: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)


class ClientFieldDefinition(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """A company-defined extra attribute of clients."""

    __tablename__ = "client_field_definitions"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    field_type: Mapped[CustomFieldType] = mapped_column(enum_column(CustomFieldType), nullable=False)
    is_required: Mapped[bool] = mapped_column(default=False, nullable=False)
    enum_values: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )


class ClientCustomFieldValue(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """The value of one custom field for one client."""

    __tablename__ = "client_custom_field_values"
    __table_args__ = (
        UniqueConstraint("client_id", "field_definition_id", name="uq_client_field_value"),
    )

    client_id: Mapped[str] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    field_definition_id: Mapped[str] = mapped_column(
        ForeignKey("client_field_definitions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    value: Mapped[str | None] = mapped_column(Text, nullable=True)


class ClientIcon(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """A visual marker clients can be tagged with."""

    __tablename__ = "client_icons"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon_type: Mapped[IconType] = mapped_column(
        enum_column(IconType), default=IconType.LUCIDE, nullable=False,
    )
    icon_value: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )


class ClientIconAssignment(UUIDMixin, Base):
    __tablename__ = "client_icon_assignments"
    __table_args__ = (
        UniqueConstraint("client_id", "icon_id", name="uq_client_icon"),
    )

    client_id: Mapped[str] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    icon_id: Mapped[str] = mapped_column(
        ForeignKey("client_icons.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
