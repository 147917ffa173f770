"""
Tasks API Endpoints.

Company tasks with subtasks, labels and a kanban board. Gated by the
`tasks` module.
"""

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from accounting.backend.core.dependencies import DbSession, RequestId, require_module
from accounting.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from accounting.backend.models.enums import TaskPriority, TaskStatus
from accounting.backend.models.user import User
from accounting.backend.repositories.task import TaskFilters
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.task import (
    BulkStatusRequest,
    BulkStatusResult,
    ClientTaskStatistics,
    KanbanColumn,
    ReorderRequest,
    TaskCreate,
    TaskDependencyCreate,
    TaskDependencyResponse,
    TaskLabelCreate,
    TaskLabelResponse,
    TaskLabelUpdate,
    TaskResponse,
    TaskUpdate,
)
from accounting.backend.services.tasks import TaskService

router = APIRouter()

MODULE = "tasks"
TaskReader = Annotated[User, Depends(require_module(MODULE, "read"))]
TaskWriter = Annotated[User, Depends(require_module(MODULE, "write"))]
TaskDeleter = Annotated[User, Depends(require_module(MODULE, "delete"))]


@router.get("", summary="List tasks (paginated)")
async def list_tasks(
    user: TaskReader,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    status: TaskStatus | None = Query(default=None),
    priority: TaskPriority | None = Query(default=None),
    assignee_id: str | None = Query(default=None),
    client_id: str | None = Query(default=None),
    parent_id: str | None = Query(default=None),
    label_id: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    due_date_from: date | None = Query(default=None),
    due_date_to: date | None = Query(default=None),
) -> dict[str, Any]:
    filters = TaskFilters(
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        client_id=client_id,
        parent_id=parent_id,
        label_id=label_id,
        search=search,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
    )
    tasks, total = await TaskService(db).find_all(user, filters, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=tasks,
        item_schema=TaskResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("", response_model=ApiResponse[TaskResponse], status_code=201, summary="Create a task")
async def create_task(data: TaskCreate, user: TaskWriter, db: DbSession) -> ApiResponse[TaskResponse]:
    task = await TaskService(db).create(user, data)
    return ApiResponse(data=TaskResponse.model_validate(task))


@router.get(
    "/kanban",
    response_model=ApiResponse[list[KanbanColumn]],
    summary="Kanban board",
    description="Top-level tasks grouped by status, ordered by sort order.",
)
async def get_kanban_board(user: TaskReader, db: DbSession) -> ApiResponse[list[KanbanColumn]]:
    columns = await TaskService(db).get_kanban_board(user)
    return ApiResponse(data=[KanbanColumn.model_validate(column) for column in columns])


@router.post(
    "/reorder",
    response_model=ApiResponse[list[TaskResponse]],
    summary="Reorder tasks",
    description="Sort order follows the position in `task_ids`. An optional status moves the tasks as well.",
)
async def reorder_tasks(data: ReorderRequest, user: TaskWriter, db: DbSession) -> ApiResponse[list[TaskResponse]]:
    tasks = await TaskService(db).reorder(user, data.task_ids, data.status)
    return ApiResponse(data=[TaskResponse.model_validate(t) for t in tasks])


@router.post("/bulk-status", response_model=ApiResponse[BulkStatusResult], summary="Change status of several tasks")
async def bulk_update_status(
    data: BulkStatusRequest,
    user: TaskWriter,
    db: DbSession,
) -> ApiResponse[BulkStatusResult]:
    updated = await TaskService(db).bulk_update_status(user, data.task_ids, data.status)
    return ApiResponse(data=BulkStatusResult(updated=updated))


@router.get(
    "/client/{client_id}/statistics",
    response_model=ApiResponse[ClientTaskStatistics],
    summary="Task counts for a client",
)
async def get_client_statistics(
    client_id: str,
    user: TaskReader,
    db: DbSession,
) -> ApiResponse[ClientTaskStatistics]:
    return ApiResponse(data=await TaskService(db).get_client_task_statistics(user, client_id))


# Labels


@router.get("/labels", response_model=ApiResponse[list[TaskLabelResponse]], summary="List labels")
async def list_labels(user: TaskReader, db: DbSession) -> ApiResponse[list[TaskLabelResponse]]:
    labels = await TaskService(db).list_labels(user)
    return ApiResponse(data=[TaskLabelResponse.model_validate(label) for label in labels])


@router.post("/labels", response_model=ApiResponse[TaskLabelResponse], status_code=201, summary="Create a label")
async def create_label(data: TaskLabelCreate, user: TaskWriter, db: DbSession) -> ApiResponse[TaskLabelResponse]:
    label = await TaskService(db).create_label(user, data)
    return ApiResponse(data=TaskLabelResponse.model_validate(label))


@router.patch("/labels/{label_id}", response_model=ApiResponse[TaskLabelResponse], summary="Update a label")
async def update_label(
    label_id: str,
    data: TaskLabelUpdate,
    user: TaskWriter,
    db: DbSession,
) -> ApiResponse[TaskLabelResponse]:
    label = await TaskService(db).update_label(user, label_id, data)
    return ApiResponse(data=TaskLabelResponse.model_validate(label))


@router.delete("/labels/{label_id}", status_code=204, summary="Delete a label")
async def delete_label(label_id: str, user: TaskDeleter, db: DbSession) -> None:
    await TaskService(db).delete_label(user, label_id)


# Single task


@router.get("/{task_id}", response_model=ApiResponse[TaskResponse], summary="Get a task")
async def get_task(task_id: str, user: TaskReader, db: DbSession) -> ApiResponse[TaskResponse]:
    task = await TaskService(db).find_one(user, task_id)
    return ApiResponse(data=TaskResponse.model_validate(task))


@router.patch(
    "/{task_id}",
    response_model=ApiResponse[TaskResponse],
    summary="Update a task",
    description="Status changes must follow the allowed workflow transitions.",
)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: TaskWriter,
    db: DbSession,
) -> ApiResponse[TaskResponse]:
    task = await TaskService(db).update(user, task_id, data)
    return ApiResponse(data=TaskResponse.model_validate(task))


@router.delete("/{task_id}", status_code=204, summary="Delete a task and its subtasks")
async def delete_task(task_id: str, user: TaskDeleter, db: DbSession) -> None:
    await TaskService(db).remove(user, task_id)


@router.get("/{task_id}/subtasks", response_model=ApiResponse[list[TaskResponse]], summary="Subtasks of a task")
async def get_subtasks(task_id: str, user: TaskReader, db: DbSession) -> ApiResponse[list[TaskResponse]]:
    tasks = await TaskService(db).get_subtasks(user, task_id)
    return ApiResponse(data=[TaskResponse.model_validate(t) for t in tasks])


# Dependencies


@router.get(
    "/{task_id}/dependencies",
    response_model=ApiResponse[list[TaskDependencyResponse]],
    summary="Tasks this task depends on",
)
async def list_dependencies(
    task_id: str, user: TaskReader, db: DbSession
) -> ApiResponse[list[TaskDependencyResponse]]:
    dependencies = await TaskService(db).list_dependencies(user, task_id)
    return ApiResponse(data=[TaskDependencyResponse.model_validate(d) for d in dependencies])


@router.get(
    "/{task_id}/dependencies/blocking",
    response_model=ApiResponse[list[TaskDependencyResponse]],
    summary="Tasks that depend on this task",
)
async def list_blocking(task_id: str, user: TaskReader, db: DbSession) -> ApiResponse[list[TaskDependencyResponse]]:
    dependencies = await TaskService(db).list_blocking(user, task_id)
    return ApiResponse(data=[TaskDependencyResponse.model_validate(d) for d in dependencies])


@router.post(
    "/{task_id}/dependencies",
    response_model=ApiResponse[TaskDependencyResponse],
    status_code=201,
    summary="Add a dependency",
    description="Rejected when the task would depend on itself, directly or through other tasks.",
)
async def add_dependency(
    task_id: str,
    data: TaskDependencyCreate,
    user: TaskWriter,
    db: DbSession,
) -> ApiResponse[TaskDependencyResponse]:
    dependency = await TaskService(db).add_dependency(user, task_id, data)
    return ApiResponse(data=TaskDependencyResponse.model_validate(dependency))


@router.delete("/dependencies/{dependency_id}", status_code=204, summary="Remove a dependency")
async def remove_dependency(dependency_id: str, user: TaskWriter, db: DbSession) -> None:
    await TaskService(db).remove_dependency(user, dependency_id)
