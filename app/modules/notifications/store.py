import logging
from typing import List, Optional

from app.modules.notifications.models import WorkshopNotificationType
from app.modules.notifications.schemas import WorkshopNotification
from app.modules.notifications.service import WorkshopNotificationApiService

logger = logging.getLogger(__name__)

REMINDER_TYPES = frozenset({
    WorkshopNotificationType.REMINDER_24H,
    WorkshopNotificationType.REMINDER_1H,
    WorkshopNotificationType.STARTING_NOW,
    WorkshopNotificationType.ENROLLMENT_DEADLINE_REMINDER,
})

CERTIFICATE_TYPES = frozenset({
    WorkshopNotificationType.CERTIFICATE_ISSUED,
    WorkshopNotificationType.COMPLETED,
})


def filter_notifications(notifications: List[WorkshopNotification], view: str = "all") -> List[WorkshopNotification]:
    """Notification center tabs: all, unread, reminders, certificates."""
    if view == "unread":
        return [n for n in notifications if not n.read]
    if view == "reminders":
        return [n for n in notifications if n.type in REMINDER_TYPES]
    if view == "certificates":
        return [n for n in notifications if n.type in CERTIFICATE_TYPES]
    return list(notifications)


class WorkshopNotificationStore:
    """A user's workshop notifications and unread count."""

    def __init__(self, api: WorkshopNotificationApiService, user_id: Optional[str] = None):
        self.api = api
        self.user_id = user_id
        self.notifications: List[WorkshopNotification] = []
        self.unread_count = 0
        self.loading = False
        self.error: Optional[str] = None

    async def fetch_notifications(self) -> None:
        if not self.user_id:
            self.notifications = []
            self.unread_count = 0
            return

        self.loading = True
        self.error = None
        try:
            data = await self.api.get_workshop_notifications(self.user_id)
            self.notifications = data
            self.unread_count = len([n for n in data if not n.read])
        except Exception as e:
            logger.error(f"Failed to fetch notifications for user {self.user_id}: {e}")
            self.error = str(e) or "Failed to fetch notifications"
        finally:
            self.loading = False

    async def mark_as_read(self, notification_id: str) -> bool:
        try:
            await self.api.mark_as_read(notification_id)
        except Exception as e:
            logger.error(f"Failed to mark notification as read: {e}")
            return False
        was_unread = any(n.id == notification_id and not n.read for n in self.notifications)
        self.notifications = [
            n.model_copy(update={"read": True}) if n.id == notification_id else n for n in self.notifications
        ]
        if was_unread:
            self.unread_count = max(0, self.unread_count - 1)
        return True

    async def mark_all_as_read(self) -> bool:
        if not self.user_id:
            return False
        try:
            await self.api.mark_all_as_read(self.user_id)
        except Exception as e:
            logger.error(f"Failed to mark all notifications as read: {e}")
            return False
        self.notifications = [n.model_copy(update={"read": True}) for n in self.notifications]
        self.unread_count = 0
        return True

    async def delete_notification(self, notification_id: str) -> bool:
        try:
            await self.api.delete_notification(notification_id)
        except Exception as e:
            logger.error(f"Failed to delete notification: {e}")
            return False
        deleted = next((n for n in self.notifications if n.id == notification_id), None)
        self.notifications = [n for n in self.notifications if n.id != notification_id]
        if deleted is not None and not deleted.read:
            self.unread_count = max(0, self.unread_count - 1)
        return True
