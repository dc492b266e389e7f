# backend/app/routes/notifications.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.models.notifications import (
    BulkNotificationUpdate,
    NotificationPayload,
    NotificationSettingsPayload,
    NotificationUpdate,
)
from app.services import notification_service
from app.utils.auth import current_user

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
def list_notifications(
    user_address: Optional[str] = None,
    category: Optional[str] = None,
    type: Optional[str] = None,
    read: Optional[bool] = None,
    priority: Optional[int] = None,
    search: Optional[str] = None,
    limit: int = Query(notification_service.DEFAULT_LIMIT, ge=1, le=200),
    offset: int = Query(0, ge=0),
    include_stats: bool = False,
):
    if not user_address:
        raise HTTPException(status_code=400, detail="user_address is required")

    filters = {
        "category": category,
        "type": type,
        "read": read,
        "priority": priority,
        "search": search,
    }
    filters = {k: v for k, v in filters.items() if v is not None}

    data = notification_service.list_notifications(
        user_address, filters, limit=limit, offset=offset, include_stats=include_stats
    )
    return {"success": True, **data}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_notification(data: NotificationPayload):
    notification = notification_service.create_notification(data.model_dump())
    message = "Notification created" if notification else "Notification skipped by user settings"
    return {"success": True, "notification": notification, "message": message}


@router.patch("")
def bulk_update(data: BulkNotificationUpdate):
    updated = notification_service.bulk_update(data.user_address, data.action, data.filters)
    return {"success": True, "updated_count": updated}


@router.get("/settings")
def get_settings(address: str = Depends(current_user)):
    return {"success": True, "settings": notification_service.get_settings(address)}


@router.put("/settings")
def update_settings(data: NotificationSettingsPayload, address: str = Depends(current_user)):
    settings = notification_service.update_settings(address, data.model_dump(exclude_none=True))
    return {"success": True, "settings": settings}


@router.patch("/{notification_id}")
def update_notification(notification_id: UUID, data: NotificationUpdate, address: str = Depends(current_user)):
    notification = notification_service.set_read(address, str(notification_id), data.read)
    return {"success": True, "notification": notification}


@router.delete("/{notification_id}")
def delete_notification(notification_id: UUID, address: str = Depends(current_user)):
    notification_service.delete_notification(address, str(notification_id))
    return {"success": True, "message": "Notification deleted"}
