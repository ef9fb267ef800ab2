"""
Notification inbox endpoints (authenticated).

Only notifications whose send time has come, that have not expired and
were not voided are visible.
"""

from fastapi import APIRouter, Depends, Query

from app.dependencies import CurrentUser, PaginationParams, ServicesDep, paginate
from app.models import (
    MessageResponse,
    Notification,
    NotificationListResponse,
    UnreadCount,
)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    operation_id="listNotifications",
    summary="List the authenticated user's notifications",
)
async def list_notifications(
    current_user: CurrentUser,
    services: ServicesDep,
    pagination: PaginationParams = Depends(PaginationParams),
    unread_only: bool = Query(False, description="Only unread notifications"),
) -> NotificationListResponse:
    items, total = await services.scheduler.list_for_recipient(
        current_user.email,
        unread_only=unread_only,
        limit=pagination.page_size,
        offset=pagination.offset,
    )
    return paginate(items, total, pagination, NotificationListResponse)


@router.get(
    "/unread-count",
    response_model=UnreadCount,
    operation_id="countUnreadNotifications",
    summary="Number of unread notifications",
)
async def count_unread(current_user: CurrentUser, services: ServicesDep) -> UnreadCount:
    return UnreadCount(count=await services.scheduler.count_unread(current_user.email))


@router.post(
    "/read-all",
    response_model=MessageResponse,
    operation_id="markAllNotificationsRead",
    summary="Mark every visible notification as read",
)
async def mark_all_read(current_user: CurrentUser, services: ServicesDep) -> MessageResponse:
    updated = await services.scheduler.mark_all_read(current_user.email)
    return MessageResponse(message=f"{updated} notification(s) marked as read")


@router.post(
    "/{notification_id}/read",
    response_model=Notification,
    operation_id="markNotificationRead",
    summary="Mark one notification as read",
)
async def mark_read(
    notification_id: str,
    current_user: CurrentUser,
    services: ServicesDep,
) -> Notification:
    return await services.scheduler.mark_read(notification_id, current_user.email)
