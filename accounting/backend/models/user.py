"""
User and Company Models.

Every user belongs to one company, except that ADMIN users are attached
to the single system company.
"""

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from accounting.backend.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, enum_column
from accounting.backend.models.enums import UserRole


class Company(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """A tenant: an accounting office or the system company."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    nip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", use_alter=True, name="fk_companies_owner_id", ondelete="SET NULL"),
        nullable=True,
    )
    is_system_company: Mapped[bool] = mapped_column(default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name!r})>"


class User(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Application user."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(enum_column(UserRole), nullable=False)
    company_id: Mapped[str | None] = mapped_column(
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"
