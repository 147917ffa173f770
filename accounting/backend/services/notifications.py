"""
Notification Service.

In-app and email notifications. Other services call `notify()` to fan a
single event out to a set of recipients; each recipient's per-module
settings decide which channels they get it on. The user-facing
operations only ever touch the caller's own notifications and settings.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.config import get_app_config
from accounting.backend.core.exceptions import AuthorizationError, ExternalServiceError, ValidationError
from accounting.backend.core.utils import utc_now
from accounting.backend.models.notification import Notification, NotificationSetting
from accounting.backend.models.user import User
from accounting.backend.repositories.email_config import EmailConfigurationRepository
from accounting.backend.repositories.notification import (
    NotificationFilters,
    NotificationRepository,
    NotificationSettingRepository,
)
from accounting.backend.repositories.user import UserRepository
from accounting.backend.schemas.notification import (
    ModuleNotificationSettingsUpdate,
    NotificationCreate,
    NotificationSettingsUpdate,
)
from accounting.backend.services.base import BaseService
from accounting.backend.services.email import EmailService
from accounting.backend.services.tenant import TenantService

MAX_BATCH_SIZE = 100
DEFAULT_MODULE_SLUG = "system"

# Prefix of the dotted notification type -> module the notification belongs to
TYPE_PREFIX_MODULES: dict[str, str] = {
    "task": "tasks",
    "client": "clients",
    "time": "time-tracking",
    "email": "email-client",
    "ai": "ai-agent",
    "offer": "offers",
    "lead": "offers",
    "user": "company",
    "company": "company",
    "module": "company",
    "permission": "company",
}


def module_slug_for(notification_type: str) -> str:
    """Derive the module slug from a type such as 'task.assigned'."""
    prefix = notification_type.split(".", 1)[0]
    return TYPE_PREFIX_MODULES.get(prefix, DEFAULT_MODULE_SLUG)


IN_APP = "in_app"
EMAIL = "email"

# Last segment of the type -> setting that switches the event off
EVENT_SWITCHES: dict[str, str] = {
    "created": "receive_on_create",
    "updated": "receive_on_update",
    "bulk_updated": "receive_on_update",
    "deleted": "receive_on_delete",
}
TASK_EVENT_SWITCHES: dict[str, str] = {
    "task.completed": "receive_on_task_completed",
    "task.overdue": "receive_on_task_overdue",
}


def channel_allowed(setting: NotificationSetting | None, notification_type: str, channel: str) -> bool:
    """
    Whether a recipient with `setting` gets `notification_type` on `channel`.

    A recipient who never saved settings for the module gets everything.
    The channel switch is checked first, then the per-type override, then
    the event switch matching the type.
    """
    if setting is None:
        return True
    if not (setting.in_app_enabled if channel == IN_APP else setting.email_enabled):
        return False
    preference = (setting.type_preferences or {}).get(notification_type) or {}
    if preference.get(channel) is False:
        return False
    switch = TASK_EVENT_SWITCHES.get(notification_type) or EVENT_SWITCHES.get(notification_type.rsplit(".", 1)[-1])
    return getattr(setting, switch) if switch else True


def _email_body(title: str, message: str | None, action_url: str | None) -> str:
    parts = [title]
    if message:
        parts.append(message)
    if action_url:
        parts.append(action_url)
    return "\n\n".join(parts)


class NotificationService(BaseService):
    def __init__(self, session: AsyncSession, mailer: EmailService | None = None) -> None:
        super().__init__(session)
        self.repo = NotificationRepository(session)
        self.settings = NotificationSettingRepository(session)
        self.email_configs = EmailConfigurationRepository(session)
        self.users = UserRepository(session)
        self.tenant = TenantService(session)
        self.mailer = mailer or EmailService(session)

    @staticmethod
    def _build(data: NotificationCreate) -> Notification:
        return Notification(
            recipient_id=data.recipient_id,
            company_id=data.company_id,
            type=data.type,
            module_slug=data.module_slug or module_slug_for(data.type),
            title=data.title,
            message=data.message,
            data=data.data,
            action_url=data.action_url,
            actor_id=data.actor_id,
        )

    async def create(self, data: NotificationCreate) -> Notification:
        notification = self._build(data)
        await self._execute_db_operation("create notification", self.repo.add_many([notification]))
        self._log_debug("Notification created", type=data.type, recipient_id=data.recipient_id)
        return notification

    async def create_batch(self, items: list[NotificationCreate]) -> list[Notification]:
        """
        Raises:
            ValidationError: If more than MAX_BATCH_SIZE notifications are given
        """
        if len(items) > MAX_BATCH_SIZE:
            raise ValidationError(
                f"Cannot create more than {MAX_BATCH_SIZE} notifications at once",
                details={"count": len(items)},
            )
        if not items:
            return []
        notifications = [self._build(item) for item in items]
        return await self._execute_db_operation(
            "create notifications", self.repo.add_many(notifications),
        )

    async def notify(
        self,
        recipient_ids: list[str],
        company_id: str,
        type: str,
        title: str,
        message: str | None = None,
        data: dict | None = None,
        action_url: str | None = None,
        actor_id: str | None = None,
    ) -> list[Notification]:
        """
        Send one event to several users.

        The actor never notifies themselves. Each recipient's settings for
        the type's module pick the channels; email goes out through the
        company mailbox and never fails the caller. Does nothing when
        notifications are disabled in features.yaml.

        Returns the in-app notifications created.
        """
        if not get_app_config().features.notifications_enabled:
            return []

        recipients = [rid for rid in dict.fromkeys(recipient_ids) if rid and rid != actor_id]
        if not recipients:
            return []

        settings = await self.settings.map_for_recipients(recipients, company_id, module_slug_for(type))
        in_app = [rid for rid in recipients if channel_allowed(settings.get(rid), type, IN_APP)]
        by_email = [rid for rid in recipients if channel_allowed(settings.get(rid), type, EMAIL)]

        items = [
            NotificationCreate(
                recipient_id=recipient_id,
                company_id=company_id,
                type=type,
                title=title,
                message=message,
                data=data,
                action_url=action_url,
                actor_id=actor_id,
            )
            for recipient_id in in_app
        ]
        created: list[Notification] = []
        for start in range(0, len(items), MAX_BATCH_SIZE):
            created.extend(await self.create_batch(items[start:start + MAX_BATCH_SIZE]))

        emailed = await self._send_emails(
            by_email, company_id, title, message, action_url, {n.recipient_id: n for n in created},
        )
        self._log_operation("Notifications sent", type=type, recipients=len(created), emailed=emailed)
        return created

    async def _send_emails(
        self,
        recipient_ids: list[str],
        company_id: str,
        title: str,
        message: str | None,
        action_url: str | None,
        notifications: dict[str, Notification],
    ) -> int:
        """Best effort: a failed delivery is logged and the remaining recipients still get theirs."""
        if not recipient_ids:
            return 0
        config = await self.email_configs.get_for_company(company_id)
        if config is None or not config.is_active:
            self._log_debug("No company mailbox, notification emails skipped", company_id=company_id)
            return 0

        body = _email_body(title, message, action_url)
        sent = 0
        for recipient_id, address in (await self.users.emails_by_ids(recipient_ids)).items():
            try:
                await self.mailer.deliver(config, [address], title, body)
            except (ExternalServiceError, ValidationError) as e:
                self._logger.warning(
                    "Notification email failed",
                    extra={"recipient_id": recipient_id, "company_id": company_id, "error": str(e)},
                )
                continue
            sent += 1
            notification = notifications.get(recipient_id)
            if notification is not None:
                notification.email_sent = True
                notification.email_sent_at = utc_now()
        if sent and notifications:
            await self.session.flush()
        return sent

    async def find_all(
        self,
        user: User,
        filters: NotificationFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.search(user.id, company_id, filters, limit, offset)

    async def find_archived(
        self,
        user: User,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        return await self.find_all(user, NotificationFilters(is_archived=True), limit, offset)

    async def find_one(self, user: User, notification_id: str) -> Notification:
        """
        Raises:
            NotFoundError: If the notification does not exist
            AuthorizationError: If it belongs to somebody else
        """
        notification = await self.repo.get_by_id(notification_id)
        company_id = await self.tenant.get_effective_company_id(user)
        if notification.recipient_id != user.id or notification.company_id != company_id:
            raise AuthorizationError("Access to this notification is denied")
        return notification

    async def get_unread_count(self, user: User) -> int:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.count_unread(user.id, company_id)

    async def mark_as_read(self, user: User, notification_id: str) -> Notification:
        notification = await self.find_one(user, notification_id)
        if notification.is_read:
            return notification
        return await self.repo.update_instance(notification, is_read=True, read_at=utc_now())

    async def mark_as_unread(self, user: User, notification_id: str) -> Notification:
        notification = await self.find_one(user, notification_id)
        return await self.repo.update_instance(notification, is_read=False, read_at=None)

    async def mark_all_as_read(self, user: User) -> int:
        company_id = await self.tenant.get_effective_company_id(user)
        count = await self.repo.mark_all_read(user.id, company_id)
        self._log_operation("Notifications marked read", user_id=user.id, count=count)
        return count

    async def archive(self, user: User, notification_id: str) -> Notification:
        notification = await self.find_one(user, notification_id)
        return await self.repo.update_instance(
            notification, is_archived=True, archived_at=utc_now(),
        )

    async def restore(self, user: User, notification_id: str) -> Notification:
        notification = await self.find_one(user, notification_id)
        return await self.repo.update_instance(notification, is_archived=False, archived_at=None)

    async def archive_multiple(self, user: User, ids: list[str]) -> int:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.archive_many(ids, user.id, company_id)

    async def delete(self, user: User, notification_id: str) -> None:
        notification = await self.find_one(user, notification_id)
        await self.repo.delete_instance(notification)

    # Settings

    async def get_settings(self, user: User, module_slug: str) -> NotificationSetting:
        """The caller's settings for a module, created with every channel on the first time they are read."""
        company_id = await self.tenant.get_effective_company_id(user)
        setting = await self.settings.get_for(user.id, company_id, module_slug)
        if setting is not None:
            return setting
        return await self._execute_db_operation(
            "create notification settings",
            self.settings.create(user_id=user.id, company_id=company_id, module_slug=module_slug),
        )

    async def list_settings(self, user: User) -> list[NotificationSetting]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.settings.list_for_user(user.id, company_id)

    async def update_settings(
        self, user: User, module_slug: str, data: ModuleNotificationSettingsUpdate
    ) -> NotificationSetting:
        setting = await self.get_settings(user, module_slug)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return setting
        setting = await self.settings.update_instance(setting, **changes)
        self._log_operation("Notification settings updated", module_slug=module_slug, fields=sorted(changes))
        return setting

    async def update_all_settings(self, user: User, data: NotificationSettingsUpdate) -> int:
        """Apply the same switches to every module the caller has saved settings for."""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return 0
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.settings.update_all_for_user(user.id, company_id, changes)
