"""
Task Schemas.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from accounting.backend.models.enums import TaskDependencyType, TaskPriority, TaskStatus


class TaskLabelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default="#6366f1", max_length=20)


class TaskLabelUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    color: str | None = Field(default=None, max_length=20)


class TaskLabelResponse(BaseModel):
    id: str
    name: str
    color: str

    model_config = ConfigDict(from_attributes=True)


class TaskCreate(BaseModel):
    """Schema for creating a task."""

    title: str = Field(..., min_length=1, max_length=255, examples=["Prepare VAT-7 for March"])
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None
    start_date: date | None = None
    estimated_minutes: int | None = Field(default=None, ge=0)
    parent_id: str | None = None
    client_id: str | None = None
    assignee_id: str | None = None
    label_ids: list[str] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    start_date: date | None = None
    estimated_minutes: int | None = Field(default=None, ge=0)
    parent_id: str | None = None
    client_id: str | None = None
    assignee_id: str | None = None
    label_ids: list[str] | None = None


class TaskResponse(BaseModel):
    id: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None
    start_date: date | None
    estimated_minutes: int | None
    sort_order: int
    parent_id: str | None
    client_id: str | None
    assignee_id: str | None
    created_by_id: str | None
    is_active: bool
    labels: list[TaskLabelResponse]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class KanbanColumn(BaseModel):
    status: TaskStatus
    tasks: list[TaskResponse]
    count: int


class ReorderRequest(BaseModel):
    task_ids: list[str] = Field(..., min_length=1)
    status: TaskStatus | None = None


class BulkStatusRequest(BaseModel):
    task_ids: list[str] = Field(..., min_length=1)
    status: TaskStatus


class BulkStatusResult(BaseModel):
    updated: int


class ClientTaskStatistics(BaseModel):
    total: int
    by_status: dict[str, int]


class TaskDependencyCreate(BaseModel):
    depends_on_task_id: str
    dependency_type: TaskDependencyType = TaskDependencyType.BLOCKED_BY


class DependencyTaskSummary(BaseModel):
    id: str
    title: str
    status: TaskStatus
    assignee_id: str | None

    model_config = ConfigDict(from_attributes=True)


class TaskDependencyResponse(BaseModel):
    id: str
    task_id: str
    depends_on_task_id: str
    dependency_type: TaskDependencyType
    created_by_id: str | None
    created_at: datetime
    task: DependencyTaskSummary
    depends_on_task: DependencyTaskSummary

    model_config = ConfigDict(from_attributes=True)
