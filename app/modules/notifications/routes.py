from fastapi import APIRouter, Depends, HTTPException, Query
from app.core.dependencies import get_notification_api, get_notification_store, require_identity
from app.modules.auth.schemas import Identity
from app.modules.notifications.models import WorkshopNotificationType
from app.modules.notifications.schemas import (
    NotificationCenterView,
    NotificationContent,
    WorkshopNotification,
    WorkshopNotificationData,
)
from app.modules.notifications.service import WorkshopNotificationApiService, generate_notification_content
from app.modules.notifications.store import WorkshopNotificationStore, filter_notifications
from pydantic import BaseModel
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class CreateNotificationRequest(BaseModel):
    user_id: str
    type: WorkshopNotificationType
    data: WorkshopNotificationData
    scheduled_for: Optional[str] = None


@router.get("", response_model=NotificationCenterView)
async def get_notification_center(
    view: str = Query("all", pattern="^(all|unread|reminders|certificates)$"),
    store: WorkshopNotificationStore = Depends(get_notification_store),
):
    """The caller's workshop notifications, filtered by tab"""
    await store.fetch_notifications()
    return NotificationCenterView(
        notifications=filter_notifications(store.notifications, view),
        unread_count=store.unread_count,
        error=store.error,
    )


@router.post("", response_model=WorkshopNotification, status_code=201)
async def create_notification(
    request: CreateNotificationRequest,
    identity: Identity = Depends(require_identity),
    api: WorkshopNotificationApiService = Depends(get_notification_api),
):
    return await api.create_workshop_notification(request.user_id, request.type, request.data, request.scheduled_for)


@router.post("/preview", response_model=NotificationContent)
async def preview_notification(type: WorkshopNotificationType, data: WorkshopNotificationData):
    """Title, message and priority a notification of this type would carry"""
    return generate_notification_content(type, data)


@router.put("/read-all")
async def mark_all_as_read(store: WorkshopNotificationStore = Depends(get_notification_store)):
    if not await store.mark_all_as_read():
        raise HTTPException(status_code=502, detail="Failed to mark all notifications as read")
    return {"unreadCount": store.unread_count}


@router.put("/{notification_id}/read")
async def mark_as_read(notification_id: str, store: WorkshopNotificationStore = Depends(get_notification_store)):
    if not await store.mark_as_read(notification_id):
        raise HTTPException(status_code=502, detail="Failed to mark notification as read")
    return {"unreadCount": store.unread_count}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, store: WorkshopNotificationStore = Depends(get_notification_store)):
    if not await store.delete_notification(notification_id):
        raise HTTPException(status_code=502, detail="Failed to delete notification")
    return {"unreadCount": store.unread_count}
