"""
SQLAlchemy Base Model.

Tables combine `Base` with the mixins below. Enum and money columns go
through enum_column() and money_column() so the schema is identical on
PostgreSQL and SQLite.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Enum, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from accounting.backend.core.utils import utc_now


class Base(DeclarativeBase):
    pass


class UUIDMixin:
    # String UUIDs: SQLite has no native uuid type
    id: Mapped[str] = mapped_column(primary_key=True, default=lambda: str(uuid4()))


class TimestampMixin:
    """Naive UTC `created_at`, and `updated_at` refreshed on every UPDATE."""

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)


class SoftDeleteMixin:
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False, index=True)


def enum_column(enum_cls: type[enum.Enum]) -> Enum:
    """VARCHAR(50) holding the member *value*, validated on the Python side."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=50,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


def money_column() -> Numeric:
    return Numeric(12, 2, asdecimal=False)
