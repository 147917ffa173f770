"""
Domain Enumerations.

Shared by ORM models and API schemas.
"""

import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    COMPANY_OWNER = "COMPANY_OWNER"
    EMPLOYEE = "EMPLOYEE"


class ModuleSource(str, enum.Enum):
    FILE = "file"
    LEGACY = "legacy"


class PermissionTargetType(str, enum.Enum):
    COMPANY = "company"
    EMPLOYEE = "employee"


# Clients

class EmploymentType(str, enum.Enum):
    DG = "DG"
    DG_ETAT = "DG_ETAT"
    DG_AKCJONARIUSZ = "DG_AKCJONARIUSZ"
    DG_HALF_TIME_BELOW_MIN = "DG_HALF_TIME_BELOW_MIN"
    DG_HALF_TIME_ABOVE_MIN = "DG_HALF_TIME_ABOVE_MIN"


class VatStatus(str, enum.Enum):
    VAT_MONTHLY = "VAT_MONTHLY"
    VAT_QUARTERLY = "VAT_QUARTERLY"
    NO = "NO"
    NO_WATCH_LIMIT = "NO_WATCH_LIMIT"


class TaxScheme(str, enum.Enum):
    PIT_17 = "PIT_17"
    PIT_19 = "PIT_19"
    LUMP_SUM = "LUMP_SUM"
    GENERAL = "GENERAL"


class ZusStatus(str, enum.Enum):
    FULL = "FULL"
    PREFERENTIAL = "PREFERENTIAL"
    NONE = "NONE"


class AmlGroup(str, enum.Enum):
    LOW = "LOW"
    STANDARD = "STANDARD"
    ELEVATED = "ELEVATED"
    HIGH = "HIGH"


class CustomFieldType(str, enum.Enum):
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    DATETIME = "DATETIME"
    BOOLEAN = "BOOLEAN"
    ENUM = "ENUM"
    MULTISELECT = "MULTISELECT"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    URL = "URL"


class IconType(str, enum.Enum):
    LUCIDE = "lucide"
    EMOJI = "emoji"
    CUSTOM = "custom"


class ChangeAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"


# Time tracking

class TimeEntryStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    BILLED = "billed"


class RoundingMethod(str, enum.Enum):
    NONE = "none"
    UP = "up"
    DOWN = "down"
    NEAREST = "nearest"


class ReportGroupBy(str, enum.Enum):
    DAY = "day"
    CLIENT = "client"
    TASK = "task"


# Tasks

class TaskStatus(str, enum.Enum):
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    CANCELLED = "cancelled"


class TaskPriority(str, enum.Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class TaskDependencyType(str, enum.Enum):
    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"
    RELATES_TO = "relates_to"


# Offers and leads

class LeadStatus(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL_SENT = "proposal_sent"
    NEGOTIATION = "negotiation"
    CONVERTED = "converted"
    LOST = "lost"


class LeadSource(str, enum.Enum):
    WEBSITE = "website"
    REFERRAL = "referral"
    PHONE = "phone"
    EMAIL = "email"
    SOCIAL_MEDIA = "social_media"
    ADVERTISEMENT = "advertisement"
    OTHER = "other"


class OfferStatus(str, enum.Enum):
    DRAFT = "draft"
    READY = "ready"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class OfferActivityType(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    EMAIL_SENT = "email_sent"
    DUPLICATED = "duplicated"


# AI agent

class AIProvider(str, enum.Enum):
    OPENAI = "openai"
    OPENROUTER = "openrouter"


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
