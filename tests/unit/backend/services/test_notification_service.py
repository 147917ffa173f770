"""
Unit Tests for Notification Service.

Covers channel selection from per-module settings and best-effort email
delivery through the company mailbox.
"""

from unittest.mock import AsyncMock, patch

import pytest

from accounting.backend.core.exceptions import ExternalServiceError
from accounting.backend.models.email_config import EmailConfiguration
from accounting.backend.models.notification import NotificationSetting
from accounting.backend.services.notifications import EMAIL, IN_APP, NotificationService, channel_allowed


def setting(**overrides) -> NotificationSetting:
    values = {
        "user_id": "user-1",
        "company_id": "company-1",
        "module_slug": "tasks",
        "in_app_enabled": True,
        "email_enabled": True,
        "receive_on_create": True,
        "receive_on_update": True,
        "receive_on_delete": True,
        "receive_on_task_completed": True,
        "receive_on_task_overdue": True,
        "type_preferences": None,
    }
    values.update(overrides)
    return NotificationSetting(**values)


class TestChannelAllowed:
    def test_no_settings_means_everything(self):
        assert channel_allowed(None, "task.assigned", IN_APP)
        assert channel_allowed(None, "task.assigned", EMAIL)

    def test_channel_switch(self):
        muted = setting(in_app_enabled=False)

        assert not channel_allowed(muted, "task.assigned", IN_APP)
        assert channel_allowed(muted, "task.assigned", EMAIL)

    def test_type_preference_overrides_one_type(self):
        muted = setting(type_preferences={"task.assigned": {"email": False}})

        assert not channel_allowed(muted, "task.assigned", EMAIL)
        assert channel_allowed(muted, "task.assigned", IN_APP)
        assert channel_allowed(muted, "task.created", EMAIL)

    @pytest.mark.parametrize(
        ("switch", "notification_type"),
        [
            ("receive_on_create", "client.created"),
            ("receive_on_update", "client.updated"),
            ("receive_on_update", "task.bulk_updated"),
            ("receive_on_delete", "client.deleted"),
            ("receive_on_task_completed", "task.completed"),
            ("receive_on_task_overdue", "task.overdue"),
        ],
    )
    def test_event_switches(self, switch, notification_type):
        assert not channel_allowed(setting(**{switch: False}), notification_type, IN_APP)

    def test_types_without_switch_are_delivered(self):
        assert channel_allowed(setting(receive_on_update=False), "task.assigned", IN_APP)


def mailbox(**overrides) -> EmailConfiguration:
    return EmailConfiguration(id="cfg-1", company_id="company-1", smtp_user="biuro@biuro.pl", is_active=True, **overrides)


class TestNotify:
    @pytest.fixture
    def service(self):
        service = NotificationService(AsyncMock(), mailer=AsyncMock())
        service.repo.add_many = AsyncMock(side_effect=lambda notifications: notifications)
        return service

    async def test_settings_pick_channels_per_recipient(self, service):
        # Arrange
        settings = {"quiet": setting(user_id="quiet", in_app_enabled=False)}
        emails = {"loud": "loud@biuro.pl", "quiet": "quiet@biuro.pl"}

        with patch.object(service.settings, "map_for_recipients", AsyncMock(return_value=settings)), \
                patch.object(service.email_configs, "get_for_company", AsyncMock(return_value=mailbox())), \
                patch.object(service.users, "emails_by_ids", AsyncMock(return_value=emails)):
            # Act
            created = await service.notify(["loud", "quiet"], "company-1", "task.assigned", "Nowe zadanie")

        # Assert
        assert [n.recipient_id for n in created] == ["loud"]
        assert created[0].email_sent is True
        assert created[0].email_sent_at is not None
        sent_to = [call.args[1] for call in service.mailer.deliver.await_args_list]
        assert sent_to == [["loud@biuro.pl"], ["quiet@biuro.pl"]]

    async def test_failed_email_does_not_stop_the_rest(self, service):
        service.mailer.deliver.side_effect = [ExternalServiceError("SMTP down", service="smtp"), None]
        emails = {"first": "first@biuro.pl", "second": "second@biuro.pl"}

        with patch.object(service.settings, "map_for_recipients", AsyncMock(return_value={})), \
                patch.object(service.email_configs, "get_for_company", AsyncMock(return_value=mailbox())), \
                patch.object(service.users, "emails_by_ids", AsyncMock(return_value=emails)):
            created = await service.notify(["first", "second"], "company-1", "task.assigned", "Nowe zadanie")

        by_recipient = {n.recipient_id: n for n in created}
        assert by_recipient["first"].email_sent is not True
        assert by_recipient["second"].email_sent is True

    async def test_no_mailbox_skips_email(self, service):
        with patch.object(service.settings, "map_for_recipients", AsyncMock(return_value={})), \
                patch.object(service.email_configs, "get_for_company", AsyncMock(return_value=None)), \
                patch.object(service.users, "emails_by_ids", AsyncMock()) as mock_emails:
            created = await service.notify(["user-1"], "company-1", "task.assigned", "Nowe zadanie")

        assert len(created) == 1
        mock_emails.assert_not_called()
        service.mailer.deliver.assert_not_called()

    async def test_actor_is_skipped(self, service):
        with patch.object(service.settings, "map_for_recipients", AsyncMock()) as mock_settings:
            created = await service.notify(["actor"], "company-1", "task.assigned", "Nowe zadanie", actor_id="actor")

        assert created == []
        mock_settings.assert_not_called()
