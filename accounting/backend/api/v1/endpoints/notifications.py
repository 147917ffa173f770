"""
Notifications API Endpoints.

The current user's notification inbox and delivery settings. Every
authenticated user has them, so no module gate applies.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from accounting.backend.core.dependencies import CurrentUser, DbSession, RequestId
from accounting.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from accounting.backend.repositories.notification import NotificationFilters
from accounting.backend.schemas.base import ApiResponse, CountResponse
from accounting.backend.schemas.notification import (
    ArchiveManyRequest,
    ModuleNotificationSettingsUpdate,
    NotificationResponse,
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
    UnreadCount,
)
from accounting.backend.services.notifications import NotificationService

router = APIRouter()


@router.get("", summary="List notifications (paginated)", description="Newest first, archived ones excluded.")
async def list_notifications(
    user: CurrentUser,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    type: str | None = Query(default=None, max_length=100),
    module_slug: str | None = Query(default=None, max_length=100),
    is_read: bool | None = Query(default=None),
) -> dict[str, Any]:
    filters = NotificationFilters(type=type, module_slug=module_slug, is_read=is_read)
    items, total = await NotificationService(db).find_all(user, filters, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=items,
        item_schema=NotificationResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/archived", summary="List archived notifications (paginated)")
async def list_archived(
    user: CurrentUser,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    items, total = await NotificationService(db).find_archived(user, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=items,
        item_schema=NotificationResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/unread-count", response_model=ApiResponse[UnreadCount], summary="Unread notification count")
async def get_unread_count(user: CurrentUser, db: DbSession) -> ApiResponse[UnreadCount]:
    count = await NotificationService(db).get_unread_count(user)
    return ApiResponse(data=UnreadCount(count=count))


@router.post("/read-all", response_model=ApiResponse[CountResponse], summary="Mark all as read")
async def mark_all_as_read(user: CurrentUser, db: DbSession) -> ApiResponse[CountResponse]:
    count = await NotificationService(db).mark_all_as_read(user)
    return ApiResponse(data=CountResponse(count=count))


@router.post("/archive-many", response_model=ApiResponse[CountResponse], summary="Archive several notifications")
async def archive_many(data: ArchiveManyRequest, user: CurrentUser, db: DbSession) -> ApiResponse[CountResponse]:
    count = await NotificationService(db).archive_multiple(user, data.ids)
    return ApiResponse(data=CountResponse(count=count))


# Settings


@router.get(
    "/settings",
    response_model=ApiResponse[list[NotificationSettingsResponse]],
    summary="Saved notification settings of the current user",
)
async def list_settings(user: CurrentUser, db: DbSession) -> ApiResponse[list[NotificationSettingsResponse]]:
    settings = await NotificationService(db).list_settings(user)
    return ApiResponse(data=[NotificationSettingsResponse.model_validate(s) for s in settings])


@router.patch(
    "/settings",
    response_model=ApiResponse[CountResponse],
    summary="Update settings of every module at once",
    description="Only modules with saved settings are changed.",
)
async def update_all_settings(
    data: NotificationSettingsUpdate, user: CurrentUser, db: DbSession
) -> ApiResponse[CountResponse]:
    count = await NotificationService(db).update_all_settings(user, data)
    return ApiResponse(data=CountResponse(count=count))


@router.get(
    "/settings/{module_slug}",
    response_model=ApiResponse[NotificationSettingsResponse],
    summary="Notification settings for one module",
    description="Created with every channel enabled on first read.",
)
async def get_module_settings(
    module_slug: str, user: CurrentUser, db: DbSession
) -> ApiResponse[NotificationSettingsResponse]:
    setting = await NotificationService(db).get_settings(user, module_slug)
    return ApiResponse(data=NotificationSettingsResponse.model_validate(setting))


@router.patch(
    "/settings/{module_slug}",
    response_model=ApiResponse[NotificationSettingsResponse],
    summary="Update notification settings for one module",
)
async def update_module_settings(
    module_slug: str,
    data: ModuleNotificationSettingsUpdate,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[NotificationSettingsResponse]:
    setting = await NotificationService(db).update_settings(user, module_slug, data)
    return ApiResponse(data=NotificationSettingsResponse.model_validate(setting))


# Single notification


@router.get("/{notification_id}", response_model=ApiResponse[NotificationResponse], summary="Get a notification")
async def get_notification(
    notification_id: str,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[NotificationResponse]:
    notification = await NotificationService(db).find_one(user, notification_id)
    return ApiResponse(data=NotificationResponse.model_validate(notification))


@router.patch("/{notification_id}/read", response_model=ApiResponse[NotificationResponse], summary="Mark as read")
async def mark_as_read(
    notification_id: str,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[NotificationResponse]:
    notification = await NotificationService(db).mark_as_read(user, notification_id)
    return ApiResponse(data=NotificationResponse.model_validate(notification))


@router.patch("/{notification_id}/unread", response_model=ApiResponse[NotificationResponse], summary="Mark as unread")
async def mark_as_unread(
    notification_id: str,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[NotificationResponse]:
    notification = await NotificationService(db).mark_as_unread(user, notification_id)
    return ApiResponse(data=NotificationResponse.model_validate(notification))


@router.patch("/{notification_id}/archive", response_model=ApiResponse[NotificationResponse], summary="Archive")
async def archive(
    notification_id: str,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[NotificationResponse]:
    notification = await NotificationService(db).archive(user, notification_id)
    return ApiResponse(data=NotificationResponse.model_validate(notification))


@router.patch("/{notification_id}/restore", response_model=ApiResponse[NotificationResponse], summary="Restore")
async def restore(
    notification_id: str,
    user: CurrentUser,
    db: DbSession,
) -> ApiResponse[NotificationResponse]:
    notification = await NotificationService(db).restore(user, notification_id)
    return ApiResponse(data=NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", status_code=204, summary="Delete a notification")
async def delete_notification(notification_id: str, user: CurrentUser, db: DbSession) -> None:
    await NotificationService(db).delete(user, notification_id)
