"""
Notification Schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationCreate(BaseModel):
    """Internal schema used by services to address a notification."""

    recipient_id: str
    company_id: str
    type: str = Field(..., min_length=1, max_length=100, examples=["task.assigned"])
    title: str = Field(..., min_length=1, max_length=255)
    message: str | None = None
    module_slug: str | None = None
    data: dict[str, Any] | None = None
    action_url: str | None = Field(default=None, max_length=500)
    actor_id: str | None = None


class NotificationResponse(BaseModel):
    id: str
    type: str
    module_slug: str
    title: str
    message: str | None
    data: dict[str, Any] | None
    action_url: str | None
    is_read: bool
    read_at: datetime | None
    is_archived: bool
    archived_at: datetime | None
    actor_id: str | None
    email_sent: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    count: int


class ArchiveManyRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1, max_length=500)


class ChannelPreference(BaseModel):
    in_app: bool | None = None
    email: bool | None = None


class NotificationSettingsUpdate(BaseModel):
    in_app_enabled: bool | None = None
    email_enabled: bool | None = None
    receive_on_create: bool | None = None
    receive_on_update: bool | None = None
    receive_on_delete: bool | None = None
    receive_on_task_completed: bool | None = None
    receive_on_task_overdue: bool | None = None


class ModuleNotificationSettingsUpdate(NotificationSettingsUpdate):
    type_preferences: dict[str, ChannelPreference] | None = None


class NotificationSettingsResponse(BaseModel):
    id: str
    module_slug: str
    in_app_enabled: bool
    email_enabled: bool
    receive_on_create: bool
    receive_on_update: bool
    receive_on_delete: bool
    receive_on_task_completed: bool
    receive_on_task_overdue: bool
    type_preferences: dict[str, ChannelPreference] | None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
