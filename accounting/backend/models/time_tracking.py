"""
Time Tracking Models.

Time entries (manual or timer based) and per-company time settings.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from accounting.backend.models.base import (
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDMixin,
    enum_column,
    money_column,
)
from accounting.backend.models.enums import RoundingMethod, TimeEntryStatus


class TimeEntry(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Work time logged by a user."""

    __tablename__ = "time_entries"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    client_id: Mapped[str | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    task_id: Mapped[str | None] = mapped_column(
        ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_running: Mapped[bool] = mapped_column(default=False, nullable=False, index=True)
    is_billable: Mapped[bool] = mapped_column(default=True, nullable=False)
    hourly_rate: Mapped[float | None] = mapped_column(money_column(), nullable=True)
    total_amount: Mapped[float | None] = mapped_column(money_column(), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="PLN", nullable=False)
    status: Mapped[TimeEntryStatus] = mapped_column(
        enum_column(TimeEntryStatus), default=TimeEntryStatus.DRAFT, nullable=False, index=True,
    )
    rejection_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    def __repr__(self) -> str:
        return f"<TimeEntry(id={self.id}, user_id={self.user_id}, status={self.status})>"


class TimeSettings(UUIDMixin, TimestampMixin, Base):
    """Time tracking policy of one company."""

    __tablename__ = "time_settings"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    rounding_method: Mapped[RoundingMethod] = mapped_column(
        enum_column(RoundingMethod), default=RoundingMethod.NONE, nullable=False,
    )
    rounding_interval: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    default_hourly_rate: Mapped[float | None] = mapped_column(money_column(), nullable=True)
    default_currency: Mapped[str] = mapped_column(String(3), default="PLN", nullable=False)
    require_approval: Mapped[bool] = mapped_column(default=False, nullable=False)
    allow_overlapping_entries: Mapped[bool] = mapped_column(default=True, nullable=False)
    working_hours_per_day: Mapped[int] = mapped_column(Integer, default=8, nullable=False)
    working_hours_per_week: Mapped[int] = mapped_column(Integer, default=40, nullable=False)
    week_start_day: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    allow_timer_mode: Mapped[bool] = mapped_column(default=True, nullable=False)
    allow_manual_entry: Mapped[bool] = mapped_column(default=True, nullable=False)
    auto_stop_timer_after_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minimum_entry_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    maximum_entry_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    enable_daily_reminder: Mapped[bool] = mapped_column(default=False, nullable=False)
    lock_entries_after_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
