"""
Notification Model.

In-app notifications addressed to one user within one company, and each
user's per-module delivery preferences.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accounting.backend.models.base import Base, TimestampMixin, UUIDMixin


class Notification(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )

    recipient_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    module_slug: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_read: Mapped[bool] = mapped_column(default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_archived: Mapped[bool] = mapped_column(default=False, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    email_sent: Mapped[bool] = mapped_column(default=False, nullable=False)
    email_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actor_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )


class NotificationSetting(UUIDMixin, TimestampMixin, Base):
    """
    Delivery preferences of one user for one module.

    `type_preferences` maps a notification type to {"in_app": bool,
    "email": bool} and overrides the module-wide switches for that type.
    """

    __tablename__ = "notification_settings"
    __table_args__ = (
        UniqueConstraint("user_id", "company_id", "module_slug", name="uq_notification_setting"),
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    module_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    in_app_enabled: Mapped[bool] = mapped_column(default=True, nullable=False)
    email_enabled: Mapped[bool] = mapped_column(default=True, nullable=False)
    receive_on_create: Mapped[bool] = mapped_column(default=True, nullable=False)
    receive_on_update: Mapped[bool] = mapped_column(default=True, nullable=False)
    receive_on_delete: Mapped[bool] = mapped_column(default=True, nullable=False)
    receive_on_task_completed: Mapped[bool] = mapped_column(default=True, nullable=False)
    receive_on_task_overdue: Mapped[bool] = mapped_column(default=True, nullable=False)
    type_preferences: Mapped[dict | None] = mapped_column(JSON, nullable=True)
