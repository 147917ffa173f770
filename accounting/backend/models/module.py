"""
Module Models.

Module registry rows, per-company module access and per-employee
permission grants.
"""

from sqlalchemy import JSON, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accounting.backend.models.base import Base, TimestampMixin, UUIDMixin, enum_column
from accounting.backend.models.enums import ModuleSource


class Module(UUIDMixin, TimestampMixin, Base):
    """A feature area a company can be granted."""

    __tablename__ = "modules"

    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[str] = mapped_column(String(20), default="1.0.0", nullable=False)
    icon: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    permissions: Mapped[list[str]] = mapped_column(
        JSON, default=lambda: ["read", "write", "delete"], nullable=False,
    )
    default_permissions: Mapped[list[str]] = mapped_column(
        JSON, default=lambda: ["read"], nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    source: Mapped[ModuleSource] = mapped_column(
        enum_column(ModuleSource), default=ModuleSource.LEGACY, nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Module(slug={self.slug!r}, active={self.is_active})>"


class CompanyModuleAccess(UUIDMixin, TimestampMixin, Base):
    """Whether a company may use a module."""

    __tablename__ = "company_module_access"
    __table_args__ = (
        UniqueConstraint("company_id", "module_id", name="uq_company_module"),
    )

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    module_id: Mapped[str] = mapped_column(
        ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    is_enabled: Mapped[bool] = mapped_column(default=True, nullable=False)

    module: Mapped["Module"] = relationship(lazy="selectin")


class UserModulePermission(UUIDMixin, TimestampMixin, Base):
    """Permissions an owner granted an employee on one module."""

    __tablename__ = "user_module_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_user_module"),
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    module_id: Mapped[str] = mapped_column(
        ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    granted_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    module: Mapped["Module"] = relationship(lazy="selectin")
