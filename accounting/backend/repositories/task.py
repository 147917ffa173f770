"""
Task Repositories.
"""

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, or_, select

from accounting.backend.core.utils import escape_like
from accounting.backend.models.enums import TaskPriority, TaskStatus
from accounting.backend.models.task import Task, TaskDependency, TaskLabel, task_label_links
from accounting.backend.repositories.base import BaseRepository


@dataclass
class TaskFilters:
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_id: str | None = None
    client_id: str | None = None
    parent_id: str | None = None
    label_id: str | None = None
    search: str | None = None
    due_date_from: date | None = None
    due_date_to: date | None = None


class TaskRepository(BaseRepository[Task]):
    model = Task
    entity_name = "Task"

    async def get_active_in_company(self, id: str, company_id: str) -> Task:
        task = await self.get_in_company(id, company_id)
        if not task.is_active:
            raise self._not_found(id)
        return task

    async def search(
        self,
        company_id: str,
        filters: TaskFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[Task], int]:
        stmt = select(Task).where(Task.company_id == company_id, Task.is_active.is_(True))
        if filters.status:
            stmt = stmt.where(Task.status == filters.status)
        if filters.priority:
            stmt = stmt.where(Task.priority == filters.priority)
        if filters.assignee_id:
            stmt = stmt.where(Task.assignee_id == filters.assignee_id)
        if filters.client_id:
            stmt = stmt.where(Task.client_id == filters.client_id)
        if filters.parent_id:
            stmt = stmt.where(Task.parent_id == filters.parent_id)
        if filters.label_id:
            stmt = stmt.where(
                Task.id.in_(
                    select(task_label_links.c.task_id).where(
                        task_label_links.c.label_id == filters.label_id
                    )
                )
            )
        if filters.search:
            pattern = f"%{escape_like(filters.search)}%"
            stmt = stmt.where(
                or_(
                    Task.title.ilike(pattern, escape="\\"),
                    Task.description.ilike(pattern, escape="\\"),
                )
            )
        if filters.due_date_from:
            stmt = stmt.where(Task.due_date >= filters.due_date_from)
        if filters.due_date_to:
            stmt = stmt.where(Task.due_date <= filters.due_date_to)

        stmt = stmt.order_by(Task.sort_order, Task.created_at.desc())
        return await self._paginate(stmt, limit, offset)

    async def titles_by_ids(self, ids: list[str], company_id: str) -> dict[str, str]:
        if not ids:
            return {}
        result = await self.session.execute(
            select(Task.id, Task.title).where(Task.id.in_(ids), Task.company_id == company_id)
        )
        return dict(result.tuples().all())

    async def max_sort_order(self, company_id: str, status: TaskStatus) -> int:
        result = await self.session.execute(
            select(func.max(Task.sort_order)).where(
                Task.company_id == company_id,
                Task.status == status,
                Task.is_active.is_(True),
            )
        )
        value = result.scalar_one_or_none()
        return -1 if value is None else value

    async def list_root_tasks(self, company_id: str) -> list[Task]:
        result = await self.session.execute(
            select(Task)
            .where(
                Task.company_id == company_id,
                Task.is_active.is_(True),
                Task.parent_id.is_(None),
            )
            .order_by(Task.sort_order, Task.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_children(self, parent_id: str) -> list[Task]:
        result = await self.session.execute(
            select(Task)
            .where(Task.parent_id == parent_id, Task.is_active.is_(True))
            .order_by(Task.sort_order, Task.created_at)
        )
        return list(result.scalars().all())

    async def list_by_ids(self, ids: list[str], company_id: str) -> list[Task]:
        result = await self.session.execute(
            select(Task).where(
                Task.id.in_(ids),
                Task.company_id == company_id,
                Task.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def count_by_status_for_client(self, company_id: str, client_id: str) -> dict[str, int]:
        result = await self.session.execute(
            select(Task.status, func.count())
            .where(
                Task.company_id == company_id,
                Task.client_id == client_id,
                Task.is_active.is_(True),
            )
            .group_by(Task.status)
        )
        return {status.value: count for status, count in result.all()}


class TaskLabelRepository(BaseRepository[TaskLabel]):
    model = TaskLabel
    entity_name = "Label"

    async def list_for_company(self, company_id: str) -> list[TaskLabel]:
        result = await self.session.execute(
            select(TaskLabel).where(TaskLabel.company_id == company_id).order_by(TaskLabel.name)
        )
        return list(result.scalars().all())

    async def name_taken(self, company_id: str, name: str, exclude_id: str | None = None) -> bool:
        stmt = select(TaskLabel.id).where(
            TaskLabel.company_id == company_id,
            func.lower(TaskLabel.name) == name.strip().lower(),
        )
        if exclude_id:
            stmt = stmt.where(TaskLabel.id != exclude_id)
        return (await self.session.execute(stmt)).first() is not None

    async def list_by_ids(self, ids: list[str], company_id: str) -> list[TaskLabel]:
        if not ids:
            return []
        result = await self.session.execute(
            select(TaskLabel).where(TaskLabel.id.in_(ids), TaskLabel.company_id == company_id)
        )
        return list(result.scalars().all())


class TaskDependencyRepository(BaseRepository[TaskDependency]):
    model = TaskDependency
    entity_name = "Task dependency"

    async def list_for_task(self, task_id: str) -> list[TaskDependency]:
        result = await self.session.execute(
            select(TaskDependency)
            .where(TaskDependency.task_id == task_id)
            .order_by(TaskDependency.created_at)
        )
        return list(result.scalars().all())

    async def list_dependents(self, task_id: str) -> list[TaskDependency]:
        result = await self.session.execute(
            select(TaskDependency)
            .where(TaskDependency.depends_on_task_id == task_id)
            .order_by(TaskDependency.created_at)
        )
        return list(result.scalars().all())

    async def depends_on_ids(self, task_id: str) -> list[str]:
        result = await self.session.execute(
            select(TaskDependency.depends_on_task_id).where(TaskDependency.task_id == task_id)
        )
        return list(result.scalars().all())

    async def exists(self, task_id: str, depends_on_task_id: str) -> bool:
        stmt = select(TaskDependency.id).where(
            TaskDependency.task_id == task_id,
            TaskDependency.depends_on_task_id == depends_on_task_id,
        )
        return (await self.session.execute(stmt)).first() is not None

    async def get_for_company(self, id: str, company_id: str) -> TaskDependency:
        """Raises NotFoundError when the dependency's task belongs to another company."""
        dependency = await self._first(
            select(TaskDependency)
            .join(Task, Task.id == TaskDependency.task_id)
            .where(TaskDependency.id == id, Task.company_id == company_id)
        )
        if dependency is None:
            raise self._not_found(id)
        return dependency
