"""
Time Tracking API Endpoints.

Time entries, the running timer, approvals, company settings, timesheets
and summary reports. Gated by the `time-tracking` module.
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
from accounting.backend.models.enums import ReportGroupBy, TimeEntryStatus
from accounting.backend.models.user import User
from accounting.backend.repositories.time_tracking import TimeEntryFilters
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.schemas.time_tracking import (
    BulkIdsRequest,
    BulkRejectRequest,
    BulkResult,
    RejectRequest,
    ReportSummary,
    StartTimerRequest,
    StopTimerRequest,
    TimeEntryCreate,
    TimeEntryResponse,
    TimeEntryUpdate,
    TimesheetResponse,
    TimeSettingsResponse,
    TimeSettingsUpdate,
    UpdateTimerRequest,
)
from accounting.backend.services.time_calculation import get_day_bounds
from accounting.backend.services.time_entries import TimeEntryService
from accounting.backend.services.time_settings import TimeSettingsService

router = APIRouter()

MODULE = "time-tracking"
TimeReader = Annotated[User, Depends(require_module(MODULE, "read"))]
TimeWriter = Annotated[User, Depends(require_module(MODULE, "write"))]
TimeDeleter = Annotated[User, Depends(require_module(MODULE, "delete"))]


# Entries


@router.get(
    "/entries",
    summary="List time entries (paginated)",
    description="Employees see their own entries; managers see the whole company and may filter by user.",
)
async def list_entries(
    user: TimeReader,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    user_id: str | None = Query(default=None),
    client_id: str | None = Query(default=None),
    task_id: str | None = Query(default=None),
    status: TimeEntryStatus | None = Query(default=None),
    is_billable: bool | None = Query(default=None),
    start_date: date | None = Query(default=None, description="First day, inclusive"),
    end_date: date | None = Query(default=None, description="Last day, inclusive"),
    search: str | None = Query(default=None, max_length=100),
    is_active: bool = Query(default=True),
) -> dict[str, Any]:
    filters = TimeEntryFilters(
        user_id=user_id,
        client_id=client_id,
        task_id=task_id,
        status=status,
        is_billable=is_billable,
        start_date=get_day_bounds(start_date)[0] if start_date else None,
        end_date=get_day_bounds(end_date)[1] if end_date else None,
        search=search,
        is_active=is_active,
    )
    entries, total = await TimeEntryService(db).find_all(user, filters, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=entries,
        item_schema=TimeEntryResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post(
    "/entries",
    response_model=ApiResponse[TimeEntryResponse],
    status_code=201,
    summary="Create a manual time entry",
)
async def create_entry(data: TimeEntryCreate, user: TimeWriter, db: DbSession) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).create(user, data)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.post(
    "/entries/bulk-approve",
    response_model=ApiResponse[BulkResult],
    summary="Approve several entries",
    description="Entries that cannot be approved are reported in `failed`.",
)
async def bulk_approve(data: BulkIdsRequest, user: TimeWriter, db: DbSession) -> ApiResponse[BulkResult]:
    return ApiResponse(data=await TimeEntryService(db).bulk_approve(user, data.ids))


@router.post("/entries/bulk-reject", response_model=ApiResponse[BulkResult], summary="Reject several entries")
async def bulk_reject(data: BulkRejectRequest, user: TimeWriter, db: DbSession) -> ApiResponse[BulkResult]:
    return ApiResponse(data=await TimeEntryService(db).bulk_reject(user, data.ids, data.note))


@router.get("/entries/{entry_id}", response_model=ApiResponse[TimeEntryResponse], summary="Get a time entry")
async def get_entry(entry_id: str, user: TimeReader, db: DbSession) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).find_one(user, entry_id)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.patch(
    "/entries/{entry_id}",
    response_model=ApiResponse[TimeEntryResponse],
    summary="Update a time entry",
    description="Only draft and rejected entries can be edited.",
)
async def update_entry(
    entry_id: str,
    data: TimeEntryUpdate,
    user: TimeWriter,
    db: DbSession,
) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).update(user, entry_id, data)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.delete("/entries/{entry_id}", status_code=204, summary="Delete a time entry")
async def delete_entry(entry_id: str, user: TimeDeleter, db: DbSession) -> None:
    await TimeEntryService(db).remove(user, entry_id)


@router.post("/entries/{entry_id}/submit", response_model=ApiResponse[TimeEntryResponse], summary="Submit for approval")
async def submit_entry(entry_id: str, user: TimeWriter, db: DbSession) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).submit(user, entry_id)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.post("/entries/{entry_id}/approve", response_model=ApiResponse[TimeEntryResponse], summary="Approve an entry")
async def approve_entry(entry_id: str, user: TimeWriter, db: DbSession) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).approve(user, entry_id)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.post("/entries/{entry_id}/reject", response_model=ApiResponse[TimeEntryResponse], summary="Reject an entry")
async def reject_entry(
    entry_id: str,
    data: RejectRequest,
    user: TimeWriter,
    db: DbSession,
) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).reject(user, entry_id, data.note)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


# Timer


@router.get(
    "/timer",
    response_model=ApiResponse[TimeEntryResponse | None],
    summary="Running timer",
    description="`data` is null when no timer is running.",
)
async def get_active_timer(user: TimeReader, db: DbSession) -> ApiResponse[TimeEntryResponse | None]:
    entry = await TimeEntryService(db).get_active_timer(user)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry) if entry else None)


@router.post("/timer/start", response_model=ApiResponse[TimeEntryResponse], status_code=201, summary="Start the timer")
async def start_timer(data: StartTimerRequest, user: TimeWriter, db: DbSession) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).start_timer(user, data)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.post("/timer/stop", response_model=ApiResponse[TimeEntryResponse], summary="Stop the timer")
async def stop_timer(data: StopTimerRequest, user: TimeWriter, db: DbSession) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).stop_timer(user, data)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.patch("/timer", response_model=ApiResponse[TimeEntryResponse], summary="Update the running timer")
async def update_timer(data: UpdateTimerRequest, user: TimeWriter, db: DbSession) -> ApiResponse[TimeEntryResponse]:
    entry = await TimeEntryService(db).update_timer(user, data)
    return ApiResponse(data=TimeEntryResponse.model_validate(entry))


@router.delete("/timer", status_code=204, summary="Discard the running timer")
async def discard_timer(user: TimeWriter, db: DbSession) -> None:
    await TimeEntryService(db).discard_timer(user)


# Settings


@router.get("/settings", response_model=ApiResponse[TimeSettingsResponse], summary="Time tracking settings")
async def get_settings(user: TimeReader, db: DbSession) -> ApiResponse[TimeSettingsResponse]:
    settings = await TimeSettingsService(db).get_settings(user)
    return ApiResponse(data=TimeSettingsResponse.model_validate(settings))


@router.patch(
    "/settings",
    response_model=ApiResponse[TimeSettingsResponse],
    summary="Update time tracking settings",
    description="Managers only.",
)
async def update_settings(
    data: TimeSettingsUpdate,
    user: TimeWriter,
    db: DbSession,
) -> ApiResponse[TimeSettingsResponse]:
    settings = await TimeSettingsService(db).update_settings(user, data)
    return ApiResponse(data=TimeSettingsResponse.model_validate(settings))


# Reports


@router.get(
    "/reports/timesheet",
    response_model=ApiResponse[TimesheetResponse],
    summary="Timesheet",
    description="Per-day totals between two dates, both inclusive.",
)
async def timesheet(
    user: TimeReader,
    db: DbSession,
    start_date: date = Query(...),
    end_date: date = Query(...),
    user_id: str | None = Query(default=None, description="Managers only; empty means the whole company"),
) -> ApiResponse[TimesheetResponse]:
    report = await TimeEntryService(db).timesheet(user, start_date, end_date, user_id)
    return ApiResponse(data=report)


@router.get(
    "/timesheet/weekly",
    response_model=ApiResponse[TimesheetResponse],
    summary="Weekly timesheet",
    description="The week containing `day`, starting on the company's configured week_start_day.",
)
async def weekly_timesheet(
    user: TimeReader,
    db: DbSession,
    day: date = Query(..., description="Any day of the week"),
    user_id: str | None = Query(default=None, description="Managers only; empty means the whole company"),
) -> ApiResponse[TimesheetResponse]:
    return ApiResponse(data=await TimeEntryService(db).weekly_timesheet(user, day, user_id))


@router.get("/timesheet/monthly", response_model=ApiResponse[TimesheetResponse], summary="Monthly timesheet")
async def monthly_timesheet(
    user: TimeReader,
    db: DbSession,
    day: date = Query(..., description="Any day of the month"),
    user_id: str | None = Query(default=None, description="Managers only; empty means the whole company"),
) -> ApiResponse[TimesheetResponse]:
    return ApiResponse(data=await TimeEntryService(db).monthly_timesheet(user, day, user_id))


@router.get(
    "/reports/summary",
    response_model=ApiResponse[ReportSummary],
    summary="Summary report",
    description="Totals between two dates, both inclusive, optionally grouped by day, client or task.",
)
async def report_summary(
    user: TimeReader,
    db: DbSession,
    start_date: date = Query(...),
    end_date: date = Query(...),
    group_by: ReportGroupBy | None = Query(default=None),
    user_id: str | None = Query(default=None, description="Managers only"),
    client_id: str | None = Query(default=None),
    task_id: str | None = Query(default=None),
    is_billable: bool | None = Query(default=None),
) -> ApiResponse[ReportSummary]:
    filters = TimeEntryFilters(user_id=user_id, client_id=client_id, task_id=task_id, is_billable=is_billable)
    report = await TimeEntryService(db).report_summary(user, start_date, end_date, filters, group_by)
    return ApiResponse(data=report)


@router.get("/reports/by-client/{client_id}", response_model=ApiResponse[ReportSummary], summary="Client report")
async def client_report(
    client_id: str,
    user: TimeReader,
    db: DbSession,
    start_date: date = Query(...),
    end_date: date = Query(...),
    group_by: ReportGroupBy | None = Query(default=None),
) -> ApiResponse[ReportSummary]:
    report = await TimeEntryService(db).client_report(user, client_id, start_date, end_date, group_by)
    return ApiResponse(data=report)
