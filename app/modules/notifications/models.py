# Backend resource: notifications ({API_URL}/api/notifications)
# Workshop notifications are regular notifications with type="workshop" and a
# sub-type drawn from WorkshopNotificationType.
from enum import Enum


class WorkshopNotificationType(str, Enum):
    ENROLLMENT_CONFIRMATION = "workshop_enrollment_confirmation"
    REMINDER_24H = "workshop_reminder_24h"
    REMINDER_1H = "workshop_reminder_1h"
    STARTING_NOW = "workshop_starting_now"
    CANCELLED = "workshop_cancelled"
    UPDATED = "workshop_updated"
    COMPLETED = "workshop_completed"
    CERTIFICATE_ISSUED = "certificate_issued"
    WAITLIST_PROMOTED = "waitlist_promoted"
    CREATOR_APPROVED = "workshop_creator_approved"
    ENROLLMENT_DEADLINE_REMINDER = "enrollment_deadline_reminder"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
