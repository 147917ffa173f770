"""
Email Configuration Model.

SMTP/IMAP account settings owned either by a user or by a company.
Passwords are stored Fernet-encrypted.
"""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from accounting.backend.models.base import Base, TimestampMixin, UUIDMixin


class EmailConfiguration(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "email_configurations"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (company_id IS NULL)",
            name="ck_email_config_single_owner",
        ),
    )

    user_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=True,
    )
    company_id: Mapped[str | None] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), unique=True, nullable=True,
    )
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    smtp_host: Mapped[str] = mapped_column(String(255), nullable=False)
    smtp_port: Mapped[int] = mapped_column(Integer, nullable=False)
    smtp_secure: Mapped[bool] = mapped_column(default=True, nullable=False)
    smtp_user: Mapped[str] = mapped_column(String(255), nullable=False)
    smtp_password: Mapped[str] = mapped_column(Text, nullable=False)
    imap_host: Mapped[str] = mapped_column(String(255), nullable=False)
    imap_port: Mapped[int] = mapped_column(Integer, nullable=False)
    imap_tls: Mapped[bool] = mapped_column(default=True, nullable=False)
    imap_user: Mapped[str] = mapped_column(String(255), nullable=False)
    imap_password: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
