"""
Task Service.

Kanban tasks with subtasks, labels and a fixed status workflow.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import (
    ConflictError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from accounting.backend.models.enums import TaskStatus
from accounting.backend.models.task import Task, TaskDependency, TaskLabel
from accounting.backend.models.user import User
from accounting.backend.repositories.client import ClientRepository
from accounting.backend.repositories.task import (
    TaskDependencyRepository,
    TaskFilters,
    TaskLabelRepository,
    TaskRepository,
)
from accounting.backend.repositories.user import UserRepository
from accounting.backend.schemas.task import (
    ClientTaskStatistics,
    TaskCreate,
    TaskDependencyCreate,
    TaskLabelCreate,
    TaskLabelUpdate,
    TaskUpdate,
)
from accounting.backend.services.base import BaseService
from accounting.backend.services.notifications import NotificationService
from accounting.backend.services.tenant import TenantService

STATUS_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.BACKLOG: frozenset({TaskStatus.TODO, TaskStatus.CANCELLED}),
    TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.BACKLOG, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.IN_REVIEW, TaskStatus.TODO, TaskStatus.CANCELLED}),
    TaskStatus.IN_REVIEW: frozenset({TaskStatus.DONE, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.DONE: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.CANCELLED: frozenset({TaskStatus.BACKLOG, TaskStatus.TODO}),
}

KANBAN_COLUMNS = (
    TaskStatus.BACKLOG,
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.IN_REVIEW,
    TaskStatus.DONE,
)


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Staying in the same status is always allowed."""
    return current == target or target in STATUS_TRANSITIONS[current]


def validate_transition(current: TaskStatus, target: TaskStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransitionError("task", current.value, target.value)


class TaskService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = TaskRepository(session)
        self.labels = TaskLabelRepository(session)
        self.dependencies = TaskDependencyRepository(session)
        self.clients = ClientRepository(session)
        self.users = UserRepository(session)
        self.tenant = TenantService(session)
        self.notifications = NotificationService(session)

    async def _check_assignee(self, company_id: str, assignee_id: str) -> None:
        assignee = await self.users.get_company_user(assignee_id, company_id)
        if assignee is None or not assignee.is_active:
            raise NotFoundError("Assignee not found", details={"id": assignee_id})

    async def _resolve_labels(self, company_id: str, label_ids: list[str]) -> list[TaskLabel]:
        unique_ids = list(dict.fromkeys(label_ids))
        labels = await self.labels.list_by_ids(unique_ids, company_id)
        if len(labels) != len(unique_ids):
            missing = sorted(set(unique_ids) - {label.id for label in labels})
            raise NotFoundError("Label not found", details={"ids": missing})
        return labels

    async def _check_parent(self, task: Task | None, parent_id: str, company_id: str) -> None:
        """The parent must exist in the company and must not be the task or one of its descendants."""
        parent = await self.repo.get_active_in_company(parent_id, company_id)
        if task is None:
            return
        ancestor: Task | None = parent
        while ancestor is not None:
            if ancestor.id == task.id:
                raise ValidationError("A task cannot be its own parent or a parent of its ancestor")
            ancestor = (
                await self.repo.get_by_id_or_none(ancestor.parent_id) if ancestor.parent_id else None
            )

    async def _notify_assignee(self, actor: User, task: Task) -> None:
        if not task.assignee_id:
            return
        await self.notifications.notify(
            [task.assignee_id],
            task.company_id,
            "task.assigned",
            f"You have been assigned: {task.title}",
            message=f"Assigned by {actor.full_name}",
            data={"task_id": task.id},
            action_url=f"/tasks/{task.id}",
            actor_id=actor.id,
        )

    # Queries

    async def find_all(
        self,
        user: User,
        filters: TaskFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Task], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.search(company_id, filters, limit, offset)

    async def find_one(self, user: User, task_id: str) -> Task:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_active_in_company(task_id, company_id)

    async def get_subtasks(self, user: User, task_id: str) -> list[Task]:
        task = await self.find_one(user, task_id)
        return await self.repo.list_children(task.id)

    async def get_kanban_board(self, user: User) -> list[dict]:
        """Root tasks grouped into the board columns. Cancelled tasks are not shown."""
        company_id = await self.tenant.get_effective_company_id(user)
        tasks = await self.repo.list_root_tasks(company_id)
        columns = []
        for status in KANBAN_COLUMNS:
            column_tasks = [task for task in tasks if task.status == status]
            columns.append({"status": status, "tasks": column_tasks, "count": len(column_tasks)})
        return columns

    async def get_client_task_statistics(self, user: User, client_id: str) -> ClientTaskStatistics:
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        by_status = await self.repo.count_by_status_for_client(company_id, client.id)
        return ClientTaskStatistics(total=sum(by_status.values()), by_status=by_status)

    # Commands

    async def create(self, user: User, data: TaskCreate) -> Task:
        company_id = await self.tenant.get_effective_company_id(user)
        if data.parent_id:
            await self._check_parent(None, data.parent_id, company_id)
        if data.assignee_id:
            await self._check_assignee(company_id, data.assignee_id)
        if data.client_id:
            await self.clients.get_in_company(data.client_id, company_id)
        labels = await self._resolve_labels(company_id, data.label_ids)

        sort_order = await self.repo.max_sort_order(company_id, data.status) + 1
        task = await self._execute_db_operation(
            "create task",
            self.repo.create(
                **data.model_dump(exclude={"label_ids"}),
                company_id=company_id,
                created_by_id=user.id,
                sort_order=sort_order,
                labels=labels,
            ),
        )
        self._log_operation("Task created", task_id=task.id, status=task.status.value)
        await self._notify_assignee(user, task)
        return task

    async def update(self, user: User, task_id: str, data: TaskUpdate) -> Task:
        task = await self.find_one(user, task_id)
        changes = data.model_dump(exclude_unset=True)
        for key in ("title", "status", "priority"):
            if key in changes and changes[key] is None:
                changes.pop(key)

        label_ids = changes.pop("label_ids", None)
        if "status" in changes:
            validate_transition(task.status, changes["status"])
        if changes.get("parent_id"):
            await self._check_parent(task, changes["parent_id"], task.company_id)
        if changes.get("assignee_id"):
            await self._check_assignee(task.company_id, changes["assignee_id"])
        if changes.get("client_id"):
            await self.clients.get_in_company(changes["client_id"], task.company_id)
        if label_ids is not None:
            changes["labels"] = await self._resolve_labels(task.company_id, label_ids)

        reassigned = "assignee_id" in changes and changes["assignee_id"] != task.assignee_id
        if not changes:
            return task

        task = await self._execute_db_operation(
            "update task", self.repo.update_instance(task, **changes),
        )
        self._log_operation("Task updated", task_id=task.id, fields=sorted(changes))
        if reassigned:
            await self._notify_assignee(user, task)
        return task

    async def remove(self, user: User, task_id: str) -> None:
        """Soft delete the task and all of its subtasks."""
        task = await self.find_one(user, task_id)
        pending = [task]
        removed = 0
        while pending:
            current = pending.pop()
            pending.extend(await self.repo.list_children(current.id))
            current.is_active = False
            removed += 1
        await self.session.flush()
        self._log_operation("Task deactivated", task_id=task.id, removed=removed)

    async def reorder(self, user: User, task_ids: list[str], status: TaskStatus | None = None) -> list[Task]:
        """Give each task its position in task_ids as sort_order, optionally moving them to a status."""
        company_id = await self.tenant.get_effective_company_id(user)
        tasks = {task.id: task for task in await self.repo.list_by_ids(task_ids, company_id)}
        missing = [task_id for task_id in task_ids if task_id not in tasks]
        if missing:
            raise NotFoundError("Task not found", details={"ids": missing})

        if status is not None:
            for task in tasks.values():
                validate_transition(task.status, status)

        ordered = []
        for index, task_id in enumerate(task_ids):
            task = tasks[task_id]
            task.sort_order = index
            if status is not None:
                task.status = status
            ordered.append(task)
        await self.session.flush()
        return ordered

    async def bulk_update_status(self, user: User, task_ids: list[str], status: TaskStatus) -> int:
        company_id = await self.tenant.get_effective_company_id(user)
        tasks = await self.repo.list_by_ids(task_ids, company_id)
        if len(tasks) != len(set(task_ids)):
            found = {task.id for task in tasks}
            raise NotFoundError("Task not found", details={"ids": sorted(set(task_ids) - found)})

        for task in tasks:
            validate_transition(task.status, status)
        for task in tasks:
            task.status = status
        await self.session.flush()
        self._log_operation("Task status bulk update", status=status.value, count=len(tasks))
        return len(tasks)

    # Dependencies

    async def list_dependencies(self, user: User, task_id: str) -> list[TaskDependency]:
        task = await self.find_one(user, task_id)
        return await self.dependencies.list_for_task(task.id)

    async def list_blocking(self, user: User, task_id: str) -> list[TaskDependency]:
        """Dependencies of other tasks on this one."""
        task = await self.find_one(user, task_id)
        return await self.dependencies.list_dependents(task.id)

    async def _would_create_cycle(self, task_id: str, depends_on_task_id: str) -> bool:
        """True when depends_on_task_id already depends on task_id, directly or transitively."""
        visited: set[str] = set()
        stack = [depends_on_task_id]
        while stack:
            current = stack.pop()
            if current == task_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(
                dep_id for dep_id in await self.dependencies.depends_on_ids(current) if dep_id not in visited
            )
        return False

    async def add_dependency(self, user: User, task_id: str, data: TaskDependencyCreate) -> TaskDependency:
        if task_id == data.depends_on_task_id:
            raise ValidationError("A task cannot depend on itself", details={"id": task_id})
        task = await self.find_one(user, task_id)
        depends_on = await self.repo.get_active_in_company(data.depends_on_task_id, task.company_id)

        if await self.dependencies.exists(task.id, depends_on.id):
            raise ConflictError("Dependency already exists", details={"depends_on_task_id": depends_on.id})
        if await self._would_create_cycle(task.id, depends_on.id):
            raise ValidationError(
                "Dependency would create a cycle",
                details={"task_id": task.id, "depends_on_task_id": depends_on.id},
            )

        dependency = await self._execute_db_operation(
            "create task dependency",
            self.dependencies.create(
                task_id=task.id,
                depends_on_task_id=depends_on.id,
                dependency_type=data.dependency_type,
                created_by_id=user.id,
            ),
        )
        self._log_operation("Task dependency created", task_id=task.id, depends_on_task_id=depends_on.id)
        return dependency

    async def remove_dependency(self, user: User, dependency_id: str) -> None:
        company_id = await self.tenant.get_effective_company_id(user)
        dependency = await self.dependencies.get_for_company(dependency_id, company_id)
        await self.dependencies.delete_instance(dependency)
        self._log_operation("Task dependency removed", dependency_id=dependency_id)

    # Labels

    async def list_labels(self, user: User) -> list[TaskLabel]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.labels.list_for_company(company_id)

    async def create_label(self, user: User, data: TaskLabelCreate) -> TaskLabel:
        company_id = await self.tenant.get_effective_company_id(user)
        if await self.labels.name_taken(company_id, data.name):
            raise ConflictError(f"Label '{data.name}' already exists")
        return await self._execute_db_operation(
            "create label",
            self.labels.create(company_id=company_id, name=data.name.strip(), color=data.color),
        )

    async def update_label(self, user: User, label_id: str, data: TaskLabelUpdate) -> TaskLabel:
        company_id = await self.tenant.get_effective_company_id(user)
        label = await self.labels.get_in_company(label_id, company_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if await self.labels.name_taken(company_id, changes["name"], exclude_id=label.id):
                raise ConflictError(f"Label '{changes['name']}' already exists")
        if not changes:
            return label
        return await self.labels.update_instance(label, **changes)

    async def delete_label(self, user: User, label_id: str) -> None:
        company_id = await self.tenant.get_effective_company_id(user)
        label = await self.labels.get_in_company(label_id, company_id)
        await self.labels.delete_instance(label)
