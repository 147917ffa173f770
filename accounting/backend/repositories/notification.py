"""
Notification Repository.
"""

from dataclasses import dataclass

from sqlalchemy import func, select, update

from accounting.backend.core.utils import utc_now
from accounting.backend.models.notification import Notification, NotificationSetting
from accounting.backend.repositories.base import BaseRepository


@dataclass
class NotificationFilters:
    type: str | None = None
    module_slug: str | None = None
    is_read: bool | None = None
    is_archived: bool = False


class NotificationRepository(BaseRepository[Notification]):
    model = Notification
    entity_name = "Notification"

    async def search(
        self,
        recipient_id: str,
        company_id: str,
        filters: NotificationFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[Notification], int]:
        stmt = select(Notification).where(
            Notification.recipient_id == recipient_id,
            Notification.company_id == company_id,
            Notification.is_archived.is_(filters.is_archived),
        )
        if filters.type:
            stmt = stmt.where(Notification.type == filters.type)
        if filters.module_slug:
            stmt = stmt.where(Notification.module_slug == filters.module_slug)
        if filters.is_read is not None:
            stmt = stmt.where(Notification.is_read.is_(filters.is_read))
        stmt = stmt.order_by(Notification.created_at.desc())
        return await self._paginate(stmt, limit, offset)

    async def count_unread(self, recipient_id: str, company_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Notification).where(
                Notification.recipient_id == recipient_id,
                Notification.company_id == company_id,
                Notification.is_read.is_(False),
                Notification.is_archived.is_(False),
            )
        )
        return result.scalar_one()

    async def mark_all_read(self, recipient_id: str, company_id: str) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.company_id == company_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount or 0

    async def archive_many(self, ids: list[str], recipient_id: str, company_id: str) -> int:
        if not ids:
            return 0
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.id.in_(ids),
                Notification.recipient_id == recipient_id,
                Notification.company_id == company_id,
                Notification.is_archived.is_(False),
            )
            .values(is_archived=True, archived_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount or 0

    async def add_many(self, notifications: list[Notification]) -> list[Notification]:
        self.session.add_all(notifications)
        await self.session.flush()
        return notifications


class NotificationSettingRepository(BaseRepository[NotificationSetting]):
    model = NotificationSetting
    entity_name = "Notification settings"

    async def get_for(self, user_id: str, company_id: str, module_slug: str) -> NotificationSetting | None:
        return await self._first(
            select(NotificationSetting).where(
                NotificationSetting.user_id == user_id,
                NotificationSetting.company_id == company_id,
                NotificationSetting.module_slug == module_slug,
            )
        )

    async def list_for_user(self, user_id: str, company_id: str) -> list[NotificationSetting]:
        result = await self.session.execute(
            select(NotificationSetting)
            .where(NotificationSetting.user_id == user_id, NotificationSetting.company_id == company_id)
            .order_by(NotificationSetting.module_slug)
        )
        return list(result.scalars().all())

    async def map_for_recipients(
        self, user_ids: list[str], company_id: str, module_slug: str
    ) -> dict[str, NotificationSetting]:
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(NotificationSetting).where(
                NotificationSetting.user_id.in_(user_ids),
                NotificationSetting.company_id == company_id,
                NotificationSetting.module_slug == module_slug,
            )
        )
        return {setting.user_id: setting for setting in result.scalars().all()}

    async def update_all_for_user(self, user_id: str, company_id: str, values: dict) -> int:
        result = await self.session.execute(
            update(NotificationSetting)
            .where(NotificationSetting.user_id == user_id, NotificationSetting.company_id == company_id)
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount or 0
