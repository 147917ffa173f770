# Importing this package registers every table on Base.metadata.
from accounting.backend.models.ai import AIConfiguration, AIConversation, AIMessage
from accounting.backend.models.base import Base
from accounting.backend.models.client import (
    ChangeLog,
    Client,
    ClientCustomFieldValue,
    ClientFieldDefinition,
    ClientIcon,
    ClientIconAssignment,
)
from accounting.backend.models.email_config import EmailConfiguration
from accounting.backend.models.email_draft import EmailDraft
from accounting.backend.models.module import CompanyModuleAccess, Module, UserModulePermission
from accounting.backend.models.notification import Notification, NotificationSetting
from accounting.backend.models.offer import Lead, Offer, OfferActivity
from accounting.backend.models.task import Task, TaskDependency, TaskLabel, task_label_links
from accounting.backend.models.time_tracking import TimeEntry, TimeSettings
from accounting.backend.models.user import Company, User

__all__ = [
    "AIConfiguration",
    "AIConversation",
    "AIMessage",
    "Base",
    "ChangeLog",
    "Client",
    "ClientCustomFieldValue",
    "ClientFieldDefinition",
    "ClientIcon",
    "ClientIconAssignment",
    "Company",
    "CompanyModuleAccess",
    "EmailConfiguration",
    "EmailDraft",
    "Lead",
    "Module",
    "Notification",
    "NotificationSetting",
    "Offer",
    "OfferActivity",
    "Task",
    "TaskDependency",
    "TaskLabel",
    "TimeEntry",
    "TimeSettings",
    "User",
    "UserModulePermission",
    "task_label_links",
]
