"""
Time Entry Service.

Manual entries, the per-user timer, the approval workflow, timesheets and
summary reports. Employees only ever see their own entries; managers
(ADMIN, COMPANY_OWNER) see the whole company.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import (
    ApplicationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from accounting.backend.core.utils import round_money, to_naive_utc, utc_now
from accounting.backend.models.enums import ReportGroupBy, TimeEntryStatus
from accounting.backend.models.time_tracking import TimeEntry, TimeSettings
from accounting.backend.models.user import User
from accounting.backend.repositories.client import ClientRepository
from accounting.backend.repositories.task import TaskRepository
from accounting.backend.repositories.time_tracking import TimeEntryFilters, TimeEntryRepository
from accounting.backend.schemas.time_tracking import (
    BulkResult,
    ReportGroup,
    ReportSummary,
    StartTimerRequest,
    StopTimerRequest,
    TimeEntryCreate,
    TimeEntryUpdate,
    TimesheetDay,
    TimesheetResponse,
    UpdateTimerRequest,
)
from accounting.backend.services import time_calculation as calc
from accounting.backend.services.base import BaseService
from accounting.backend.services.notifications import NotificationService
from accounting.backend.services.tenant import TenantService
from accounting.backend.services.time_settings import TimeSettingsService, is_manager

EDITABLE_STATUSES = frozenset({TimeEntryStatus.DRAFT, TimeEntryStatus.REJECTED})
MAX_REPORT_DAYS = 366
NO_CLIENT = "no-client"
NO_TASK = "no-task"


class TimeEntryService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = TimeEntryRepository(session)
        self.clients = ClientRepository(session)
        self.tasks = TaskRepository(session)
        self.tenant = TenantService(session)
        self.settings = TimeSettingsService(session)
        self.notifications = NotificationService(session)

    # Helpers

    async def _check_references(self, company_id: str, client_id: str | None, task_id: str | None) -> None:
        if client_id:
            await self.clients.get_in_company(client_id, company_id)
        if task_id:
            await self.tasks.get_active_in_company(task_id, company_id)

    async def _check_overlap(
        self,
        settings: TimeSettings,
        user_id: str,
        start: datetime,
        end: datetime | None,
        exclude_id: str | None = None,
    ) -> None:
        if settings.allow_overlapping_entries:
            return
        candidates = await self.repo.find_overlap_candidates(user_id, settings.company_id, end, exclude_id=exclude_id)
        overlapping = [entry for entry in candidates if calc.check_overlap(start, end, entry.start_time, entry.end_time)]
        if overlapping:
            raise ConflictError(
                "Time entry overlaps with an existing entry",
                details={"overlapping_ids": [entry.id for entry in overlapping]},
            )

    @staticmethod
    def _rounded_minutes(settings: TimeSettings, start: datetime, end: datetime) -> int:
        minutes = calc.calculate_duration(start, end)
        return calc.round_duration(minutes, settings.rounding_method, settings.rounding_interval)

    @staticmethod
    def _amount(minutes: int, rate: float | None, billable: bool) -> float | None:
        return calc.calculate_total_amount(minutes, rate) if billable else None

    @staticmethod
    def _check_length(settings: TimeSettings, minutes: int) -> None:
        if settings.minimum_entry_minutes and minutes < settings.minimum_entry_minutes:
            raise ValidationError(
                f"Time entry must be at least {settings.minimum_entry_minutes} minutes",
                details={"duration_minutes": minutes},
            )
        if settings.maximum_entry_minutes and minutes > settings.maximum_entry_minutes:
            raise ValidationError(
                f"Time entry cannot exceed {settings.maximum_entry_minutes} minutes",
                details={"duration_minutes": minutes},
            )

    @staticmethod
    def _check_lock(settings: TimeSettings, user: User, entry: TimeEntry) -> None:
        """Entries older than lock_entries_after_days are read-only for employees."""
        if not settings.lock_entries_after_days or is_manager(user):
            return
        lock_date = utc_now() - timedelta(days=settings.lock_entries_after_days)
        if entry.start_time < lock_date:
            raise AuthorizationError("Time entry is locked")

    async def _notify_owner(self, actor: User, entry: TimeEntry, type: str, title: str) -> None:
        await self.notifications.notify(
            [entry.user_id],
            entry.company_id,
            type,
            title,
            data={"time_entry_id": entry.id, "status": entry.status.value},
            action_url=f"/time-tracking/entries/{entry.id}",
            actor_id=actor.id,
        )

    # CRUD

    async def find_all(
        self,
        user: User,
        filters: TimeEntryFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TimeEntry], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        if not is_manager(user):
            filters.user_id = user.id
        return await self.repo.search(company_id, filters, limit, offset)

    async def find_one(self, user: User, entry_id: str) -> TimeEntry:
        """An employee asking for someone else's entry gets a 404."""
        company_id = await self.tenant.get_effective_company_id(user)
        entry = await self.repo.get_in_company(entry_id, company_id)
        if not is_manager(user) and entry.user_id != user.id:
            raise NotFoundError("Time entry not found", details={"id": entry_id})
        return entry

    async def create(self, user: User, data: TimeEntryCreate) -> TimeEntry:
        """
        Raises:
            ValidationError: Manual entry disabled, bad range or entry length
            ConflictError: Overlap while overlapping entries are not allowed
        """
        company_id = await self.tenant.get_effective_company_id(user)
        settings = await self.settings.get_for_company(company_id)
        if not settings.allow_manual_entry:
            raise ValidationError("Manual time entry is disabled")

        start = to_naive_utc(data.start_time)
        end = to_naive_utc(data.end_time)
        if end <= start:
            raise ValidationError("end_time must be after start_time")

        await self._check_references(company_id, data.client_id, data.task_id)
        await self._check_overlap(settings, user.id, start, end)

        minutes = self._rounded_minutes(settings, start, end)
        self._check_length(settings, minutes)
        rate = calc.get_effective_hourly_rate(data.hourly_rate, settings.default_hourly_rate)

        entry = await self._execute_db_operation(
            "create time entry",
            self.repo.create(
                company_id=company_id,
                user_id=user.id,
                client_id=data.client_id,
                task_id=data.task_id,
                description=data.description,
                start_time=start,
                end_time=end,
                duration_minutes=minutes,
                is_running=False,
                is_billable=data.is_billable,
                hourly_rate=rate,
                total_amount=self._amount(minutes, rate, data.is_billable),
                currency=data.currency or settings.default_currency,
                status=TimeEntryStatus.DRAFT,
                tags=list(data.tags),
            ),
        )
        self._log_operation("Time entry created", entry_id=entry.id, duration_minutes=minutes)
        return entry

    async def update(self, user: User, entry_id: str, data: TimeEntryUpdate) -> TimeEntry:
        entry = await self.find_one(user, entry_id)
        settings = await self.settings.get_for_company(entry.company_id)
        self._check_lock(settings, user, entry)
        if entry.status not in EDITABLE_STATUSES:
            raise ValidationError(
                f"Only draft or rejected entries can be edited (status: {entry.status.value})",
            )

        changes = data.model_dump(exclude_unset=True)
        for key in ("start_time", "end_time", "is_billable", "currency", "tags"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        if not changes:
            return entry

        await self._check_references(entry.company_id, changes.get("client_id"), changes.get("task_id"))

        if entry.is_running:
            # the timer owns the end
            changes.pop("end_time", None)
        times_changed = "start_time" in changes or "end_time" in changes
        start = to_naive_utc(changes.get("start_time", entry.start_time))
        end = changes.get("end_time", entry.end_time)
        end = to_naive_utc(end) if end is not None else None
        if "start_time" in changes:
            changes["start_time"] = start
        if "end_time" in changes:
            changes["end_time"] = end

        if end is not None and end <= start:
            raise ValidationError("end_time must be after start_time")
        if times_changed:
            await self._check_overlap(settings, entry.user_id, start, end, exclude_id=entry.id)

        if not entry.is_running and end is not None:
            minutes = self._rounded_minutes(settings, start, end)
            self._check_length(settings, minutes)
            rate = calc.get_effective_hourly_rate(
                changes.get("hourly_rate", entry.hourly_rate), settings.default_hourly_rate,
            )
            changes["duration_minutes"] = minutes
            changes["hourly_rate"] = rate
            changes["total_amount"] = self._amount(minutes, rate, changes.get("is_billable", entry.is_billable))

        if not changes:
            return entry
        self._log_operation("Updating time entry", entry_id=entry.id, fields=sorted(changes))
        return await self.repo.update_instance(entry, **changes)

    async def remove(self, user: User, entry_id: str) -> None:
        entry = await self.find_one(user, entry_id)
        settings = await self.settings.get_for_company(entry.company_id)
        self._check_lock(settings, user, entry)
        await self.repo.update_instance(entry, is_active=False)
        self._log_operation("Time entry deactivated", entry_id=entry.id)

    # Timer

    async def start_timer(self, user: User, data: StartTimerRequest) -> TimeEntry:
        """
        Raises:
            ValidationError: If timer mode is disabled
            ConflictError: If the user already has a running timer
        """
        company_id = await self.tenant.get_effective_company_id(user)
        settings = await self.settings.get_for_company(company_id)
        if not settings.allow_timer_mode:
            raise ValidationError("Timer mode is disabled")
        if await self.repo.get_running(user.id, company_id):
            raise ConflictError("A timer is already running")

        await self._check_references(company_id, data.client_id, data.task_id)
        now = utc_now()
        await self._check_overlap(settings, user.id, now, None)

        entry = await self._execute_db_operation(
            "start timer",
            self.repo.create(
                company_id=company_id,
                user_id=user.id,
                client_id=data.client_id,
                task_id=data.task_id,
                description=data.description,
                start_time=now,
                is_running=True,
                is_billable=data.is_billable,
                hourly_rate=settings.default_hourly_rate,
                currency=settings.default_currency,
                status=TimeEntryStatus.DRAFT,
                tags=[],
            ),
        )
        self._log_operation("Timer started", entry_id=entry.id)
        return entry

    async def _running(self, user: User) -> TimeEntry:
        company_id = await self.tenant.get_effective_company_id(user)
        entry = await self.repo.get_running(user.id, company_id)
        if entry is None:
            raise NotFoundError("No active timer")
        return entry

    async def stop_timer(self, user: User, data: StopTimerRequest) -> TimeEntry:
        """
        Stop the running timer and price the entry.

        With auto_stop_timer_after_minutes set, the end is capped at that
        many minutes after the start.
        """
        entry = await self._running(user)
        settings = await self.settings.get_for_company(entry.company_id)

        end = utc_now()
        if settings.auto_stop_timer_after_minutes:
            end = min(end, entry.start_time + timedelta(minutes=settings.auto_stop_timer_after_minutes))

        minutes = self._rounded_minutes(settings, entry.start_time, end)
        rate = calc.get_effective_hourly_rate(entry.hourly_rate, settings.default_hourly_rate)
        description = entry.description
        if data.description:
            description = f"{description}\n{data.description}" if description else data.description

        entry = await self.repo.update_instance(
            entry,
            end_time=end,
            duration_minutes=minutes,
            is_running=False,
            hourly_rate=rate,
            total_amount=self._amount(minutes, rate, entry.is_billable),
            description=description,
        )
        self._log_operation("Timer stopped", entry_id=entry.id, duration_minutes=minutes)
        return entry

    async def get_active_timer(self, user: User) -> TimeEntry | None:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_running(user.id, company_id)

    async def discard_timer(self, user: User) -> None:
        entry = await self._running(user)
        await self.repo.delete_instance(entry)
        self._log_operation("Timer discarded", entry_id=entry.id)

    async def update_timer(self, user: User, data: UpdateTimerRequest) -> TimeEntry:
        entry = await self._running(user)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("is_billable") is None:
            changes.pop("is_billable", None)
        await self._check_references(entry.company_id, changes.get("client_id"), changes.get("task_id"))
        if not changes:
            return entry
        return await self.repo.update_instance(entry, **changes)

    # Approval workflow

    async def submit(self, user: User, entry_id: str) -> TimeEntry:
        entry = await self.find_one(user, entry_id)
        if entry.user_id != user.id:
            raise AuthorizationError("Only the author can submit a time entry")
        if entry.is_running:
            raise ValidationError("Stop the timer before submitting")
        if entry.status not in EDITABLE_STATUSES:
            raise ValidationError(f"Cannot submit an entry with status {entry.status.value}")
        entry = await self.repo.update_instance(entry, status=TimeEntryStatus.SUBMITTED)
        self._log_operation("Time entry submitted", entry_id=entry.id)
        return entry

    async def _submitted_for_review(self, user: User, entry_id: str) -> TimeEntry:
        if not is_manager(user):
            raise AuthorizationError("Only managers can review time entries")
        entry = await self.find_one(user, entry_id)
        if entry.status != TimeEntryStatus.SUBMITTED:
            raise ValidationError(f"Only submitted entries can be reviewed (status: {entry.status.value})")
        return entry

    async def approve(self, user: User, entry_id: str) -> TimeEntry:
        entry = await self._submitted_for_review(user, entry_id)
        entry = await self.repo.update_instance(
            entry,
            status=TimeEntryStatus.APPROVED,
            approved_by_id=user.id,
            approved_at=utc_now(),
            rejection_note=None,
        )
        self._log_operation("Time entry approved", entry_id=entry.id)
        await self._notify_owner(user, entry, "time.approved", "Your time entry was approved")
        return entry

    async def reject(self, user: User, entry_id: str, note: str) -> TimeEntry:
        entry = await self._submitted_for_review(user, entry_id)
        entry = await self.repo.update_instance(
            entry, status=TimeEntryStatus.REJECTED, rejection_note=note,
        )
        self._log_operation("Time entry rejected", entry_id=entry.id)
        await self._notify_owner(user, entry, "time.rejected", "Your time entry was rejected")
        return entry

    async def bulk_approve(self, user: User, ids: list[str]) -> BulkResult:
        processed, failed = 0, []
        for entry_id in dict.fromkeys(ids):
            try:
                await self.approve(user, entry_id)
                processed += 1
            except ApplicationError:
                failed.append(entry_id)
        return BulkResult(processed=processed, failed=failed)

    async def bulk_reject(self, user: User, ids: list[str], note: str) -> BulkResult:
        processed, failed = 0, []
        for entry_id in dict.fromkeys(ids):
            try:
                await self.reject(user, entry_id, note)
                processed += 1
            except ApplicationError:
                failed.append(entry_id)
        return BulkResult(processed=processed, failed=failed)

    # Reports

    @staticmethod
    def _check_range(start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        if (end_date - start_date).days >= MAX_REPORT_DAYS:
            raise ValidationError(f"Report range cannot exceed {MAX_REPORT_DAYS} days")

    async def _entries_in_range(
        self,
        user: User,
        start_date: date,
        end_date: date,
        filters: TimeEntryFilters,
    ) -> tuple[str, list[TimeEntry]]:
        """Employees are always narrowed to their own entries, whatever user_id they asked for."""
        self._check_range(start_date, end_date)
        company_id = await self.tenant.get_effective_company_id(user)
        if not is_manager(user):
            filters.user_id = user.id
        range_start, _ = calc.get_day_bounds(start_date)
        _, range_end = calc.get_day_bounds(end_date)
        return company_id, await self.repo.list_in_range(company_id, range_start, range_end, filters)

    async def timesheet(
        self,
        user: User,
        start_date: date,
        end_date: date,
        user_id: str | None = None,
    ) -> TimesheetResponse:
        """
        Per-day totals for [start_date, end_date], both inclusive.

        Employees always get their own timesheet; managers may pick a user
        or leave user_id empty for the whole company.
        """
        filters = TimeEntryFilters(user_id=user_id)
        _, entries = await self._entries_in_range(user, start_date, end_date, filters)

        days: dict[date, _Totals] = {}
        current = start_date
        while current <= end_date:
            days[current] = _Totals()
            current += timedelta(days=1)
        for entry in entries:
            days[entry.start_time.date()].add(entry)

        overall = _Totals.of(entries)
        return TimesheetResponse(
            start_date=start_date,
            end_date=end_date,
            user_id=filters.user_id,
            days=[
                TimesheetDay(
                    day=day,
                    total_minutes=totals.total_minutes,
                    total_formatted=calc.format_duration(totals.total_minutes),
                    billable_minutes=totals.billable_minutes,
                    total_amount=totals.total_amount,
                    entries_count=totals.entries_count,
                )
                for day, totals in days.items()
            ],
            total_minutes=overall.total_minutes,
            total_formatted=calc.format_duration(overall.total_minutes),
            billable_minutes=overall.billable_minutes,
            total_amount=overall.total_amount,
        )

    async def weekly_timesheet(self, user: User, day: date, user_id: str | None = None) -> TimesheetResponse:
        """Timesheet of the week containing `day`; the week starts on the company's week_start_day."""
        company_id = await self.tenant.get_effective_company_id(user)
        settings = await self.settings.get_for_company(company_id)
        week_start, week_end = calc.get_week_bounds(day, settings.week_start_day)
        return await self.timesheet(user, week_start.date(), week_end.date() - timedelta(days=1), user_id)

    async def monthly_timesheet(self, user: User, day: date, user_id: str | None = None) -> TimesheetResponse:
        month_start, month_end = calc.get_month_bounds(day)
        return await self.timesheet(user, month_start.date(), month_end.date() - timedelta(days=1), user_id)

    async def report_summary(
        self,
        user: User,
        start_date: date,
        end_date: date,
        filters: TimeEntryFilters,
        group_by: ReportGroupBy | None = None,
    ) -> ReportSummary:
        """
        Totals for [start_date, end_date], optionally split into groups.

        Entries without a client or task fall into a shared "no-client" or
        "no-task" group.
        """
        company_id, entries = await self._entries_in_range(user, start_date, end_date, filters)
        totals = _Totals.of(entries)
        groups = await self._group(company_id, entries, group_by) if group_by else None
        return ReportSummary(
            start_date=start_date,
            end_date=end_date,
            total_minutes=totals.total_minutes,
            billable_minutes=totals.billable_minutes,
            non_billable_minutes=totals.total_minutes - totals.billable_minutes,
            total_amount=totals.total_amount,
            entries_count=totals.entries_count,
            total_human=calc.format_duration_human(totals.total_minutes),
            group_by=group_by,
            groups=groups,
        )

    async def client_report(
        self,
        user: User,
        client_id: str,
        start_date: date,
        end_date: date,
        group_by: ReportGroupBy | None = None,
    ) -> ReportSummary:
        """
        Raises:
            NotFoundError: If the client is not in the caller's company
        """
        company_id = await self.tenant.get_effective_company_id(user)
        await self.clients.get_in_company(client_id, company_id)
        return await self.report_summary(
            user, start_date, end_date, TimeEntryFilters(client_id=client_id), group_by,
        )

    async def _group(self, company_id: str, entries: list[TimeEntry], group_by: ReportGroupBy) -> list[ReportGroup]:
        if group_by == ReportGroupBy.DAY:
            keys = [entry.start_time.date().isoformat() for entry in entries]
            names = {key: key for key in keys}
        elif group_by == ReportGroupBy.CLIENT:
            keys = [entry.client_id or NO_CLIENT for entry in entries]
            names = await self.clients.names_by_ids([key for key in set(keys) if key != NO_CLIENT], company_id)
            names[NO_CLIENT] = "Bez klienta"
        else:
            keys = [entry.task_id or NO_TASK for entry in entries]
            names = await self.tasks.titles_by_ids([key for key in set(keys) if key != NO_TASK], company_id)
            names[NO_TASK] = "Bez zadania"

        grouped: dict[str, _Totals] = {}
        for key, entry in zip(keys, entries):
            grouped.setdefault(key, _Totals()).add(entry)
        return [
            ReportGroup(
                group_id=key,
                group_name=names.get(key, key),
                total_minutes=totals.total_minutes,
                billable_minutes=totals.billable_minutes,
                total_amount=totals.total_amount,
                entries_count=totals.entries_count,
            )
            for key, totals in grouped.items()
        ]


@dataclass
class _Totals:
    total_minutes: int = 0
    billable_minutes: int = 0
    total_amount: float = 0
    entries_count: int = 0

    @classmethod
    def of(cls, entries: list[TimeEntry]) -> "_Totals":
        totals = cls()
        for entry in entries:
            totals.add(entry)
        return totals

    def add(self, entry: TimeEntry) -> None:
        minutes = entry.duration_minutes or 0
        self.total_minutes += minutes
        self.entries_count += 1
        if entry.is_billable:
            self.billable_minutes += minutes
            self.total_amount = round_money(self.total_amount + (entry.total_amount or 0))
