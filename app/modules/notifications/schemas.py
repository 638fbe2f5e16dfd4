from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from app.modules.notifications.models import WorkshopNotificationType, NotificationPriority
from app.modules.workshops.schemas import CamelModel


class WorkshopNotificationData(CamelModel):
    workshop_id: str = ""
    workshop_title: str = ""
    workshop_date: str = ""
    workshop_time: str = ""
    creator_id: Optional[str] = None
    creator_name: Optional[str] = None
    meeting_link: Optional[str] = None
    certificate_id: Optional[str] = None
    changes: Optional[List[str]] = None
    cancellation_reason: Optional[str] = None


class NotificationPayload(CamelModel):
    """Body posted to the notification side channel."""
    user_id: str
    type: str = "workshop"
    sub_type: str
    from_user_id: str
    from_user_name: str
    target_id: str
    target_type: str = "workshop"
    workshop_id: str
    certificate_id: Optional[str] = None
    message: str
    priority: NotificationPriority
    action_url: str
    action_label: str
    meeting_link: Optional[str] = None


class NotificationContent(CamelModel):
    title: str
    message: str
    priority: NotificationPriority


class WorkshopNotification(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    type: WorkshopNotificationType
    title: str = ""
    message: str = ""
    data: WorkshopNotificationData = Field(default_factory=WorkshopNotificationData)
    user_id: str
    read: bool = False
    created_at: Optional[str] = None
    scheduled_for: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.LOW


class NotificationCenterView(CamelModel):
    notifications: List[WorkshopNotification]
    unread_count: int
    error: Optional[str] = None
