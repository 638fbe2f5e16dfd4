import httpx
import logging
from datetime import date
from typing import List, Optional

from app.config import settings
from app.core.http_client import raise_for_status, send
from app.modules.notifications.models import WorkshopNotificationType, NotificationPriority
from app.modules.notifications.schemas import (
    NotificationContent,
    NotificationPayload,
    WorkshopNotification,
    WorkshopNotificationData,
)
from app.modules.workshops.display import format_clock_time

logger = logging.getLogger(__name__)

T = WorkshopNotificationType


def format_notification_date(value: str) -> str:
    """"2024-01-15" -> "January 15, 2024"."""
    try:
        day = date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        return value or ""
    return f"{day.strftime('%B')} {day.day}, {day.year}"


def format_notification_time(value: str) -> str:
    try:
        return format_clock_time(value)
    except (AttributeError, ValueError):
        return value or ""


def generate_notification_message(sub_type: str, data: WorkshopNotificationData) -> str:
    """Message for the side-channel notification; the sender's name is rendered in front of it."""
    title = data.workshop_title
    if sub_type == T.ENROLLMENT_CONFIRMATION:
        return (
            f'enrolled you in "{title}" scheduled for {format_notification_date(data.workshop_date)} '
            f"at {format_notification_time(data.workshop_time)}."
        )
    if sub_type == T.REMINDER_24H:
        return f'reminded you that "{title}" is tomorrow at {format_notification_time(data.workshop_time)}.'
    if sub_type == T.REMINDER_1H:
        return f'reminded you that "{title}" starts in 1 hour.'
    if sub_type == T.STARTING_NOW:
        return f'notified you that "{title}" is starting now. Click to join!'
    if sub_type == T.CANCELLED:
        reason = f" - {data.cancellation_reason}" if data.cancellation_reason else ""
        return f'cancelled the workshop "{title}"{reason}.'
    if sub_type == T.UPDATED:
        changes = f" - Changes: {', '.join(data.changes)}" if data.changes else ""
        return f'updated the workshop "{title}"{changes}.'
    if sub_type == T.COMPLETED:
        ready = "Your certificate is ready!" if data.certificate_id else ""
        return f'marked you as completed for "{title}". {ready}'
    if sub_type == T.CERTIFICATE_ISSUED:
        return f'issued your certificate for "{title}". Download it now!'
    if sub_type == T.WAITLIST_PROMOTED:
        return f'moved you from the waitlist to enrolled status for "{title}".'
    if sub_type == T.CREATOR_APPROVED:
        return "approved your workshop creator access. You can now create workshops!"
    if sub_type == T.ENROLLMENT_DEADLINE_REMINDER:
        return f'reminded you that enrollment for "{title}" closes in 24 hours.'
    return f'sent you a workshop notification about "{title}".'


def get_notification_priority(sub_type: str) -> NotificationPriority:
    if sub_type == T.STARTING_NOW:
        return NotificationPriority.URGENT
    if sub_type in (T.REMINDER_1H, T.CANCELLED, T.WAITLIST_PROMOTED, T.CREATOR_APPROVED):
        return NotificationPriority.HIGH
    if sub_type in (
        T.ENROLLMENT_CONFIRMATION,
        T.REMINDER_24H,
        T.UPDATED,
        T.COMPLETED,
        T.CERTIFICATE_ISSUED,
        T.ENROLLMENT_DEADLINE_REMINDER,
    ):
        return NotificationPriority.MEDIUM
    return NotificationPriority.LOW


def get_action_url(sub_type: str, data: WorkshopNotificationData) -> str:
    if sub_type == T.STARTING_NOW:
        return data.meeting_link or f"/workshops/{data.workshop_id}/join"
    if sub_type in (T.CERTIFICATE_ISSUED, T.COMPLETED):
        if data.certificate_id:
            return f"/certificates/{data.certificate_id}"
        return f"/workshops/{data.workshop_id}"
    if sub_type == T.CREATOR_APPROVED:
        return "/workshops/create"
    return f"/workshops/{data.workshop_id}"


ACTION_LABELS = {
    T.STARTING_NOW: "Join Now",
    T.CERTIFICATE_ISSUED: "Download Certificate",
    T.COMPLETED: "View Certificate",
    T.CREATOR_APPROVED: "Create Workshop",
    T.ENROLLMENT_DEADLINE_REMINDER: "Enroll Now",
    T.UPDATED: "View Changes",
    T.CANCELLED: "View Details",
}


def get_action_label(sub_type: str) -> str:
    return ACTION_LABELS.get(sub_type, "View Workshop")


class NotificationService:
    """Best-effort notification sink. Delivery failures are logged, never raised."""

    def __init__(self, client: httpx.AsyncClient, base_url: Optional[str] = None):
        self.client = client
        self.base_url = base_url or settings.notifications_url

    def build_payload(self, user_id: str, sub_type: str, data: WorkshopNotificationData) -> NotificationPayload:
        return NotificationPayload(
            user_id=user_id,
            sub_type=str(getattr(sub_type, "value", sub_type)),
            from_user_id=data.creator_id or settings.system_sender_id,
            from_user_name=data.creator_name or settings.system_sender_name,
            target_id=data.workshop_id,
            workshop_id=data.workshop_id,
            certificate_id=data.certificate_id,
            message=generate_notification_message(sub_type, data),
            priority=get_notification_priority(sub_type),
            action_url=get_action_url(sub_type, data),
            action_label=get_action_label(sub_type),
            meeting_link=data.meeting_link,
        )

    async def create_workshop_notification(self, user_id: str, sub_type: str, data: WorkshopNotificationData) -> bool:
        """Returns True when the backend accepted the notification."""
        try:
            payload = self.build_payload(user_id, sub_type, data)
            response = await send(self.client, "POST", self.base_url, "create notification", json=payload.to_payload())
            raise_for_status(response, "create notification")
            return True
        except Exception as e:
            logger.error(f"Error creating workshop notification ({sub_type}) for user {user_id}: {e}")
            return False


def generate_notification_content(type: str, data: WorkshopNotificationData) -> NotificationContent:
    """Title, message and priority shown in the notification center."""
    title = data.workshop_title
    if type == T.ENROLLMENT_CONFIRMATION:
        return NotificationContent(
            title="Workshop Enrollment Confirmed",
            message=(
                f'You\'re enrolled in "{title}" scheduled for {format_notification_date(data.workshop_date)} '
                f"at {format_notification_time(data.workshop_time)}."
            ),
            priority=NotificationPriority.MEDIUM,
        )
    if type == T.REMINDER_24H:
        return NotificationContent(
            title="Workshop Tomorrow",
            message=f'Reminder: "{title}" is tomorrow at {format_notification_time(data.workshop_time)}. Don\'t forget to join!',
            priority=NotificationPriority.HIGH,
        )
    if type == T.REMINDER_1H:
        return NotificationContent(
            title="Workshop Starting Soon",
            message=f'"{title}" starts in 1 hour. Get ready to join!',
            priority=NotificationPriority.URGENT,
        )
    if type == T.STARTING_NOW:
        return NotificationContent(
            title="Workshop Starting Now",
            message=f'"{title}" is starting now. Click to join the meeting.',
            priority=NotificationPriority.URGENT,
        )
    if type == T.CANCELLED:
        reason = f"Reason: {data.cancellation_reason}" if data.cancellation_reason else ""
        return NotificationContent(
            title="Workshop Cancelled",
            message=(
                f'Unfortunately, "{title}" scheduled for {format_notification_date(data.workshop_date)} '
                f"has been cancelled. {reason}"
            ),
            priority=NotificationPriority.HIGH,
        )
    if type == T.UPDATED:
        details = f"Changes: {', '.join(data.changes)}" if data.changes else "Check the details for more information."
        return NotificationContent(
            title="Workshop Updated",
            message=f'"{title}" has been updated. {details}',
            priority=NotificationPriority.MEDIUM,
        )
    if type == T.COMPLETED:
        ready = "Your certificate is ready for download." if data.certificate_id else ""
        return NotificationContent(
            title="Workshop Completed",
            message=f'You\'ve successfully completed "{title}"! {ready}',
            priority=NotificationPriority.MEDIUM,
        )
    if type == T.CERTIFICATE_ISSUED:
        return NotificationContent(
            title="Certificate Ready",
            message=f'Your certificate for "{title}" is now available for download.',
            priority=NotificationPriority.MEDIUM,
        )
    if type == T.WAITLIST_PROMOTED:
        return NotificationContent(
            title="Moved from Waitlist",
            message=f'Great news! You\'ve been moved from the waitlist to enrolled status for "{title}".',
            priority=NotificationPriority.HIGH,
        )
    if type == T.CREATOR_APPROVED:
        return NotificationContent(
            title="Workshop Creator Access Approved",
            message="Congratulations! You now have workshop creator permissions. Start creating and sharing your knowledge!",
            priority=NotificationPriority.HIGH,
        )
    if type == T.ENROLLMENT_DEADLINE_REMINDER:
        return NotificationContent(
            title="Enrollment Deadline Approaching",
            message=f'Don\'t miss out! Enrollment for "{title}" closes in 24 hours.',
            priority=NotificationPriority.MEDIUM,
        )
    return NotificationContent(
        title="Workshop Notification",
        message=f'You have a new workshop notification regarding "{title}".',
        priority=NotificationPriority.LOW,
    )


class WorkshopNotificationApiService:
    """Notification center endpoints. Unlike NotificationService, failures raise."""

    def __init__(self, client: httpx.AsyncClient, base_url: Optional[str] = None):
        self.client = client
        self.base_url = base_url or settings.notifications_url

    async def create_workshop_notification(
        self,
        user_id: str,
        type: WorkshopNotificationType,
        data: WorkshopNotificationData,
        scheduled_for: Optional[str] = None,
    ) -> WorkshopNotification:
        body = {"userId": user_id, "type": type.value, "data": data.to_payload(), "scheduledFor": scheduled_for}
        response = await send(self.client, "POST", f"{self.base_url}/workshop", "create notification", json=body)
        raise_for_status(response, "create notification")
        return WorkshopNotification.model_validate(response.json())

    async def get_workshop_notifications(self, user_id: str, unread_only: bool = False) -> List[WorkshopNotification]:
        params = {"unreadOnly": "true"} if unread_only else None
        response = await send(
            self.client, "GET", f"{self.base_url}/workshop/{user_id}", "fetch notifications", params=params
        )
        raise_for_status(response, "fetch notifications")
        return [WorkshopNotification.model_validate(n) for n in response.json()]

    async def mark_as_read(self, notification_id: str) -> None:
        response = await send(
            self.client, "PUT", f"{self.base_url}/{notification_id}/read", "mark notification as read"
        )
        raise_for_status(response, "mark notification as read")

    async def mark_all_as_read(self, user_id: str) -> None:
        response = await send(
            self.client, "PUT", f"{self.base_url}/workshop/{user_id}/read-all", "mark all notifications as read"
        )
        raise_for_status(response, "mark all notifications as read")

    async def delete_notification(self, notification_id: str) -> None:
        response = await send(self.client, "DELETE", f"{self.base_url}/{notification_id}", "delete notification")
        raise_for_status(response, "delete notification")
