"""
Time Tracking Schemas.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from accounting.backend.models.enums import ReportGroupBy, RoundingMethod, TimeEntryStatus


class TimeEntryCreate(BaseModel):
    """Schema for a manually entered time entry."""

    description: str | None = Field(default=None, max_length=5000)
    start_time: datetime
    end_time: datetime
    client_id: str | None = None
    task_id: str | None = None
    is_billable: bool = True
    hourly_rate: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    tags: list[str] = Field(default_factory=list)


class TimeEntryUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=5000)
    start_time: datetime | None = None
    end_time: datetime | None = None
    client_id: str | None = None
    task_id: str | None = None
    is_billable: bool | None = None
    hourly_rate: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    tags: list[str] | None = None


class TimeEntryResponse(BaseModel):
    id: str
    user_id: str
    client_id: str | None
    task_id: str | None
    description: str | None
    start_time: datetime
    end_time: datetime | None
    duration_minutes: int | None
    is_running: bool
    is_billable: bool
    hourly_rate: float | None
    total_amount: float | None
    currency: str
    status: TimeEntryStatus
    rejection_note: str | None
    approved_by_id: str | None
    approved_at: datetime | None
    tags: list[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StartTimerRequest(BaseModel):
    description: str | None = Field(default=None, max_length=5000)
    client_id: str | None = None
    task_id: str | None = None
    is_billable: bool = True


class StopTimerRequest(BaseModel):
    description: str | None = Field(default=None, max_length=5000)


class UpdateTimerRequest(BaseModel):
    description: str | None = Field(default=None, max_length=5000)
    client_id: str | None = None
    task_id: str | None = None
    is_billable: bool | None = None


class RejectRequest(BaseModel):
    note: str = Field(..., min_length=1, max_length=2000)


class BulkIdsRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1, max_length=500)


class BulkRejectRequest(BulkIdsRequest):
    note: str = Field(..., min_length=1, max_length=2000)


class BulkResult(BaseModel):
    processed: int
    failed: list[str]


class TimeSettingsResponse(BaseModel):
    id: str
    company_id: str
    rounding_method: RoundingMethod
    rounding_interval: int
    default_hourly_rate: float | None
    default_currency: str
    require_approval: bool
    allow_overlapping_entries: bool
    working_hours_per_day: int
    working_hours_per_week: int
    week_start_day: int
    allow_timer_mode: bool
    allow_manual_entry: bool
    auto_stop_timer_after_minutes: int
    minimum_entry_minutes: int
    maximum_entry_minutes: int
    enable_daily_reminder: bool
    lock_entries_after_days: int

    model_config = ConfigDict(from_attributes=True)


class TimeSettingsUpdate(BaseModel):
    rounding_method: RoundingMethod | None = None
    rounding_interval: int | None = Field(default=None, ge=1, le=240)
    default_hourly_rate: float | None = Field(default=None, ge=0)
    default_currency: str | None = Field(default=None, min_length=3, max_length=3)
    require_approval: bool | None = None
    allow_overlapping_entries: bool | None = None
    working_hours_per_day: int | None = Field(default=None, ge=1, le=24)
    working_hours_per_week: int | None = Field(default=None, ge=1, le=168)
    week_start_day: int | None = Field(default=None, ge=0, le=6)
    allow_timer_mode: bool | None = None
    allow_manual_entry: bool | None = None
    auto_stop_timer_after_minutes: int | None = Field(default=None, ge=0)
    minimum_entry_minutes: int | None = Field(default=None, ge=0)
    maximum_entry_minutes: int | None = Field(default=None, ge=0)
    enable_daily_reminder: bool | None = None
    lock_entries_after_days: int | None = Field(default=None, ge=0)


class TimesheetDay(BaseModel):
    day: date
    total_minutes: int
    total_formatted: str = Field(description="HH:MM")
    billable_minutes: int
    total_amount: float
    entries_count: int


class TimesheetResponse(BaseModel):
    start_date: date
    end_date: date
    user_id: str | None
    days: list[TimesheetDay]
    total_minutes: int
    total_formatted: str = Field(description="HH:MM")
    billable_minutes: int
    total_amount: float


class ReportGroup(BaseModel):
    group_id: str
    group_name: str
    total_minutes: int
    billable_minutes: int
    total_amount: float
    entries_count: int


class ReportSummary(BaseModel):
    """
    Totals over [start_date, end_date], both inclusive.

    `groups` is present only when the report was asked to group by day,
    client or task.
    """

    start_date: date
    end_date: date
    total_minutes: int
    billable_minutes: int
    non_billable_minutes: int
    total_amount: float
    entries_count: int
    total_human: str = Field(description="e.g. '12h 30m'")
    group_by: ReportGroupBy | None = None
    groups: list[ReportGroup] | None = None
