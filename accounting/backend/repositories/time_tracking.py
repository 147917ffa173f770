"""
Time Tracking Repositories.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from accounting.backend.core.utils import escape_like
from accounting.backend.models.enums import TimeEntryStatus
from accounting.backend.models.time_tracking import TimeEntry, TimeSettings
from accounting.backend.repositories.base import BaseRepository


@dataclass
class TimeEntryFilters:
    user_id: str | None = None
    client_id: str | None = None
    task_id: str | None = None
    status: TimeEntryStatus | None = None
    is_billable: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = None
    is_active: bool = True


class TimeEntryRepository(BaseRepository[TimeEntry]):
    model = TimeEntry
    entity_name = "Time entry"

    async def search(
        self,
        company_id: str,
        filters: TimeEntryFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[TimeEntry], int]:
        stmt = select(TimeEntry).where(
            TimeEntry.company_id == company_id,
            TimeEntry.is_active.is_(filters.is_active),
        )
        if filters.user_id:
            stmt = stmt.where(TimeEntry.user_id == filters.user_id)
        if filters.client_id:
            stmt = stmt.where(TimeEntry.client_id == filters.client_id)
        if filters.task_id:
            stmt = stmt.where(TimeEntry.task_id == filters.task_id)
        if filters.status:
            stmt = stmt.where(TimeEntry.status == filters.status)
        if filters.is_billable is not None:
            stmt = stmt.where(TimeEntry.is_billable.is_(filters.is_billable))
        if filters.start_date:
            stmt = stmt.where(TimeEntry.start_time >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(TimeEntry.start_time < filters.end_date)
        if filters.search:
            stmt = stmt.where(
                TimeEntry.description.ilike(f"%{escape_like(filters.search)}%", escape="\\")
            )
        stmt = stmt.order_by(TimeEntry.start_time.desc())
        return await self._paginate(stmt, limit, offset)

    async def get_running(self, user_id: str, company_id: str) -> TimeEntry | None:
        result = await self.session.execute(
            select(TimeEntry).where(
                TimeEntry.user_id == user_id,
                TimeEntry.company_id == company_id,
                TimeEntry.is_running.is_(True),
                TimeEntry.is_active.is_(True),
            )
        )
        return result.scalars().first()

    async def find_overlap_candidates(
        self,
        user_id: str,
        company_id: str,
        end: datetime | None,
        exclude_id: str | None = None,
    ) -> list[TimeEntry]:
        """
        Active entries of the user starting before `end`.

        Only the start side is bounded here; whether a candidate really
        intersects is decided by time_calculation.check_overlap.
        """
        stmt = select(TimeEntry).where(
            TimeEntry.user_id == user_id,
            TimeEntry.company_id == company_id,
            TimeEntry.is_active.is_(True),
        )
        if end is not None:
            stmt = stmt.where(TimeEntry.start_time < end)
        if exclude_id:
            stmt = stmt.where(TimeEntry.id != exclude_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_in_range(
        self,
        company_id: str,
        start: datetime,
        end: datetime,
        filters: TimeEntryFilters | None = None,
    ) -> list[TimeEntry]:
        """Finished active entries starting in [start, end); filters narrow by user, client, task and billability."""
        filters = filters or TimeEntryFilters()
        stmt = select(TimeEntry).where(
            TimeEntry.company_id == company_id,
            TimeEntry.is_active.is_(True),
            TimeEntry.is_running.is_(False),
            TimeEntry.start_time >= start,
            TimeEntry.start_time < end,
        )
        if filters.user_id:
            stmt = stmt.where(TimeEntry.user_id == filters.user_id)
        if filters.client_id:
            stmt = stmt.where(TimeEntry.client_id == filters.client_id)
        if filters.task_id:
            stmt = stmt.where(TimeEntry.task_id == filters.task_id)
        if filters.is_billable is not None:
            stmt = stmt.where(TimeEntry.is_billable.is_(filters.is_billable))
        result = await self.session.execute(stmt.order_by(TimeEntry.start_time))
        return list(result.scalars().all())


class TimeSettingsRepository(BaseRepository[TimeSettings]):
    model = TimeSettings

    async def get_by_company(self, company_id: str) -> TimeSettings | None:
        result = await self.session.execute(
            select(TimeSettings).where(TimeSettings.company_id == company_id)
        )
        return result.scalar_one_or_none()
