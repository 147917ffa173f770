"""
Email Draft Model.

Unsent messages kept in the application. A draft belongs to the company
and is editable by its author and by the company's managers.
"""

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from accounting.backend.models.base import Base, TimestampMixin, UUIDMixin


class EmailDraft(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "email_drafts"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    to: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    cc: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
