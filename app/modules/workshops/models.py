# Backend resources: workshops, enrollments, certificates
# The system of record lives behind the REST API ({API_URL}/api/workshops).
# The client only keeps a per-session working copy; these enums pin the
# string values the backend uses.

"""
Workshop lifecycle:
    draft -> published -> completed
    draft | published -> cancelled (terminal)
    pending is returned by the backend when creator approval is still required.

Enrollment lifecycle:
    enrolled | waitlisted -> completed | cancelled | no_show
    waitlisted -> enrolled (server-driven promotion)
"""
from enum import Enum


class WorkshopStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EnrollmentStatus(str, Enum):
    ENROLLED = "enrolled"
    WAITLISTED = "waitlisted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that count as "enrolled" for isEnrolled / enrolledWorkshops
ACTIVE_ENROLLMENT_STATUSES = frozenset({EnrollmentStatus.ENROLLED, EnrollmentStatus.COMPLETED})


class WorkshopCategory(str, Enum):
    DATA_ANALYSIS = "data_analysis"
    MACHINE_LEARNING = "machine_learning"
    PROGRAMMING = "programming"
    STATISTICS = "statistics"
    VISUALIZATION = "visualization"
    DATABASES = "databases"
    CLOUD_COMPUTING = "cloud_computing"
    WEB_DEVELOPMENT = "web_development"
    APIS = "apis"
    OTHER = "other"


class WorkshopDifficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class WorkshopFormat(str, Enum):
    ONLINE = "online"
    IN_PERSON = "in_person"
    HYBRID = "hybrid"


class DisplayStatus(str, Enum):
    """Presentation-only status derived from the clock; never persisted."""
    UPCOMING = "Upcoming"
    IN_PROGRESS = "In Progress"
    ENDED = "Ended"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class VerificationOutcome(str, Enum):
    VALID = "valid"
    EXPIRED = "invalid-expired"
    UNVERIFIED = "invalid-unverified"
    NOT_FOUND = "invalid-not-found"
    UNAVAILABLE = "unavailable"
