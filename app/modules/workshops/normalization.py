"""
Translate the backend's payload shapes into the client's shapes.

The backend stores timestamps as ``{"_seconds": ..., "_nanoseconds": ...}`` on
some endpoints and as ISO strings on others, names the enrollment counter
``enrolledCount`` on the detail endpoint, and omits optional fields freely.
Everything here is pure and idempotent: feeding a normalized dict back in
returns an equal dict.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Fields the client shape requires; an explicit null from the backend gets the default too
WORKSHOP_REQUIRED_DEFAULTS = {
    "title": "",
    "description": "",
    "category": "other",
    "difficulty": "beginner",
    "creatorId": "",
    "creatorName": "",
    "startTime": "",
    "endTime": "",
    "timezone": "UTC",
    "status": "draft",
}

WORKSHOP_STRING_DEFAULTS = {
    "shortDescription": "",
    "format": "online",
    "language": "English",
    "currency": "USD",
    "targetAudience": "",
    "location": "",
    "thumbnailUrl": "",
    "bannerUrl": "",
    "meetingPassword": "",
    "creatorAvatar": "",
    "creatorBio": "",
}

WORKSHOP_FLAG_FIELDS = (
    "isRecorded",
    "isInteractive",
    "materialsProvided",
    "requiresCompletion",
    "allowWaitlist",
)

WORKSHOP_LIST_FIELDS = ("requirements", "requiredTools")

WORKSHOP_OPTIONAL_TIMESTAMPS = ("enrollmentDeadline", "publishedAt", "completedAt")

DEFAULT_DURATION_MINUTES = 120

CERTIFICATE_TIMESTAMPS = ("issuedAt", "validUntil", "verifiedAt", "completedAt", "createdAt", "updatedAt")

WORKSHOP_STATS_FIELDS = (
    "totalEnrollments",
    "activeEnrollments",
    "completedEnrollments",
    "waitlistCount",
    "certificatesIssued",
    "attendanceRate",
    "completionRate",
    "averageRating",
    "totalRatings",
    "noShowRate",
)

USER_STATS_FIELDS = (
    "totalEnrollments",
    "completedWorkshops",
    "certificatesEarned",
    "upcomingWorkshops",
    "averageRating",
    "totalHoursLearned",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_string(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a trailing Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def is_server_timestamp(value: Any) -> bool:
    return isinstance(value, dict) and "_seconds" in value


def _from_server_timestamp(value: Dict[str, Any]) -> datetime:
    return datetime.fromtimestamp(value["_seconds"], tz=timezone.utc)


def timestamp_to_iso(value: Any) -> Any:
    if is_server_timestamp(value):
        return to_iso_string(_from_server_timestamp(value))
    return value


def timestamp_to_date(value: Any) -> Any:
    if is_server_timestamp(value):
        return _from_server_timestamp(value).date().isoformat()
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse any timestamp representation the backend uses into an aware UTC datetime.

    Date-only strings mean midnight UTC; naive strings are taken as UTC.
    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if is_server_timestamp(value):
        return _from_server_timestamp(value)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def normalize_workshop(raw: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Normalize a raw workshop payload (list- or detail-shape) into the client Workshop shape."""
    now_iso = to_iso_string(now or utc_now())
    workshop = dict(raw)

    workshop["scheduledDate"] = timestamp_to_date(raw.get("scheduledDate")) or ""

    # enrolledCount is the detail endpoint's name for currentEnrollments
    enrolled_count = workshop.pop("enrolledCount", None)
    workshop["currentEnrollments"] = enrolled_count or raw.get("currentEnrollments") or 0
    workshop["waitlistCount"] = raw.get("waitlistCount") or 0
    workshop["maxParticipants"] = raw.get("maxParticipants") or 0

    for field, default in {**WORKSHOP_REQUIRED_DEFAULTS, **WORKSHOP_STRING_DEFAULTS}.items():
        workshop[field] = raw.get(field) or default
    for field in WORKSHOP_FLAG_FIELDS:
        workshop[field] = bool(raw.get(field))
    for field in WORKSHOP_LIST_FIELDS:
        workshop[field] = raw.get(field) or []

    workshop["duration"] = raw.get("duration") or DEFAULT_DURATION_MINUTES
    workshop["price"] = raw.get("price") or 0
    workshop["autoApproveEnrollments"] = raw.get("autoApproveEnrollments") is not False

    # autoGenerateCertificate is the detail endpoint's name for issuesCertificate
    if "autoGenerateCertificate" in workshop:
        workshop["issuesCertificate"] = bool(workshop.pop("autoGenerateCertificate"))
    else:
        workshop["issuesCertificate"] = bool(raw.get("issuesCertificate"))

    workshop["createdAt"] = timestamp_to_iso(raw.get("createdAt")) or now_iso
    workshop["updatedAt"] = timestamp_to_iso(raw.get("updatedAt")) or now_iso
    for field in WORKSHOP_OPTIONAL_TIMESTAMPS:
        workshop[field] = timestamp_to_iso(raw.get(field)) or None

    return workshop


def _normalize_enrollment_record(record: Dict[str, Any], enrollment_id: Optional[str] = None) -> Dict[str, Any]:
    enrollment = dict(record)
    if enrollment_id is not None:
        enrollment["id"] = enrollment_id
    enrolled_at = timestamp_to_iso(record.get("enrolledAt"))
    enrollment["enrolledAt"] = enrolled_at
    enrollment["userAvatar"] = record.get("userAvatar") or ""
    enrollment["attended"] = bool(record.get("attended"))
    enrollment["completed"] = bool(record.get("completed"))
    enrollment["completionPercentage"] = record.get("completionPercentage") or 0
    enrollment["enrollmentSource"] = record.get("enrollmentSource") or "direct"
    enrollment["notes"] = record.get("notes") or ""
    enrollment["remindersSent"] = record.get("remindersSent") or 0
    enrollment["createdAt"] = timestamp_to_iso(record.get("createdAt")) or enrolled_at
    enrollment["updatedAt"] = timestamp_to_iso(record.get("updatedAt")) or enrolled_at
    for field in ("attendedAt", "completedAt", "feedbackAt", "certificateIssuedAt", "lastReminderAt"):
        if field in record:
            enrollment[field] = timestamp_to_iso(record[field])
    return enrollment


def normalize_enrollments(payload: Any) -> List[Dict[str, Any]]:
    """Accept either a plain list of enrollments or the nested
    ``{"workshops": [{"enrollmentId", "enrollment", "workshop"}]}`` shape."""
    if isinstance(payload, dict) and isinstance(payload.get("workshops"), list):
        enrollments = []
        for item in payload["workshops"]:
            record = item.get("enrollment") or {}
            enrollment = _normalize_enrollment_record(record, enrollment_id=item.get("enrollmentId") or record.get("id", ""))
            if item.get("workshop") is not None:
                enrollment["workshop"] = item["workshop"]
            enrollments.append(enrollment)
        return enrollments
    if isinstance(payload, list):
        return [_normalize_enrollment_record(record) for record in payload]
    logger.warning(f"Unexpected enrollments response format: {type(payload).__name__}")
    return []


def normalize_certificate(raw: Dict[str, Any]) -> Dict[str, Any]:
    certificate = dict(raw)
    for field in CERTIFICATE_TIMESTAMPS:
        if field in raw:
            certificate[field] = timestamp_to_iso(raw[field])
    return certificate


def normalize_workshop_stats(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {field: raw.get(field) if raw.get(field) is not None else 0 for field in WORKSHOP_STATS_FIELDS}


def normalize_user_stats(raw: Dict[str, Any]) -> Dict[str, Any]:
    stats = {field: raw.get(field) if raw.get(field) is not None else 0 for field in USER_STATS_FIELDS}
    stats["skillsAcquired"] = raw.get("skillsAcquired") or []
    return stats
