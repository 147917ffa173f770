"""
Task Models.

Kanban tasks with optional parent task and company-scoped labels.
"""

from datetime import date

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accounting.backend.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, enum_column
from accounting.backend.models.enums import TaskDependencyType, TaskPriority, TaskStatus

task_label_links = Table(
    "task_label_links",
    Base.metadata,
    Column("task_id", ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", ForeignKey("task_labels.id", ondelete="CASCADE"), primary_key=True),
)


class TaskLabel(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "task_labels"
    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_task_label_name"),
    )

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(20), default="#6366f1", nullable=False)


class Task(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """A unit of work on the kanban board."""

    __tablename__ = "tasks"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        enum_column(TaskStatus), default=TaskStatus.TODO, nullable=False, index=True,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        enum_column(TaskPriority), default=TaskPriority.MEDIUM, nullable=False,
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    estimated_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    client_id: Mapped[str | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    assignee_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    labels: Mapped[list[TaskLabel]] = relationship(
        secondary=task_label_links,
        lazy="selectin",
        order_by=TaskLabel.name,
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title!r}, status={self.status})>"


class TaskDependency(UUIDMixin, TimestampMixin, Base):
    """`task_id` depends on `depends_on_task_id`. Dependencies never form a cycle."""

    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint("task_id", "depends_on_task_id", name="uq_task_dependency"),
    )

    task_id: Mapped[str] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    depends_on_task_id: Mapped[str] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    dependency_type: Mapped[TaskDependencyType] = mapped_column(
        enum_column(TaskDependencyType), default=TaskDependencyType.BLOCKED_BY, nullable=False,
    )
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    task: Mapped[Task] = relationship(foreign_keys=[task_id], lazy="selectin")
    depends_on_task: Mapped[Task] = relationship(foreign_keys=[depends_on_task_id], lazy="selectin")
