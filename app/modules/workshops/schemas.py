from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from app.modules.workshops.models import (
    WorkshopStatus,
    EnrollmentStatus,
    WorkshopCategory,
    WorkshopDifficulty,
    WorkshopFormat,
    VerificationOutcome,
)


class CamelModel(BaseModel):
    """Backend JSON is camelCase; attributes stay snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Workshop(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    title: str
    description: str = ""
    short_description: str = ""
    category: WorkshopCategory = WorkshopCategory.OTHER
    difficulty: WorkshopDifficulty = WorkshopDifficulty.BEGINNER
    format: WorkshopFormat = WorkshopFormat.ONLINE

    # Creator
    creator_id: str = ""
    creator_name: str = ""
    creator_avatar: Optional[str] = None
    creator_bio: Optional[str] = None

    # Scheduling
    scheduled_date: str = ""  # ISO date
    start_time: str = ""  # HH:MM
    end_time: str = ""  # HH:MM
    duration: int = 120  # minutes
    timezone: str = "UTC"

    # Capacity
    max_participants: int = 0
    current_enrollments: int = 0
    waitlist_count: int = 0
    enrollment_deadline: Optional[str] = None
    remaining_spots: Optional[int] = None

    # Content
    prerequisites: List[str] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    agenda: List[Dict[str, Any]] = Field(default_factory=list)
    materials: List[Dict[str, Any]] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    required_tools: List[str] = Field(default_factory=list)
    target_audience: Optional[str] = None

    # Media
    thumbnail_url: Optional[str] = None
    banner_url: Optional[str] = None
    slides_url: Optional[str] = None
    recording_url: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_password: Optional[str] = None

    # Pricing / location
    price: float = 0
    currency: str = "USD"
    location: Optional[str] = None

    # Status and feature flags
    status: WorkshopStatus = WorkshopStatus.DRAFT
    tags: List[str] = Field(default_factory=list)
    language: str = "English"
    is_recorded: bool = False
    is_interactive: bool = False
    materials_provided: bool = False
    allow_waitlist: bool = False
    auto_approve_enrollments: bool = True
    send_reminders: bool = False
    requires_completion: bool = False
    completion_criteria: List[str] = Field(default_factory=list)
    certificate_template: Optional[str] = None
    issues_certificate: bool = False

    # Timestamps
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None
    completed_at: Optional[str] = None

    stats: Optional[Dict[str, Any]] = None


class WorkshopFormData(CamelModel):
    """Fields a creator submits when creating a workshop."""
    title: str
    description: str
    short_description: str = ""
    category: WorkshopCategory = WorkshopCategory.OTHER
    difficulty: WorkshopDifficulty = WorkshopDifficulty.BEGINNER
    format: WorkshopFormat = WorkshopFormat.ONLINE
    scheduled_date: str
    start_time: str
    end_time: str
    timezone: str = "UTC"
    max_participants: int = 20
    enrollment_deadline: Optional[str] = None
    prerequisites: List[str] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    required_tools: List[str] = Field(default_factory=list)
    target_audience: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    language: str = "English"
    location: Optional[str] = None
    is_recorded: bool = False
    is_interactive: bool = False
    materials_provided: bool = False
    allow_waitlist: bool = False
    auto_approve_enrollments: bool = True
    send_reminders: bool = True
    requires_completion: bool = False
    issues_certificate: bool = False
    price: float = 0
    currency: str = "USD"
    meeting_link: Optional[str] = None
    meeting_password: Optional[str] = None
    thumbnail_url: Optional[str] = None
    banner_url: Optional[str] = None


class WorkshopEnrollment(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = ""
    workshop_id: str
    user_id: str
    user_name: str = ""
    user_email: str = ""
    user_avatar: Optional[str] = None

    status: EnrollmentStatus
    enrolled_at: Optional[str] = None
    waitlist_position: Optional[int] = None
    previous_status: Optional[EnrollmentStatus] = None

    attended: bool = False
    attended_at: Optional[str] = None
    completed: bool = False
    completed_at: Optional[str] = None
    completion_percentage: float = 0

    rating: Optional[float] = None
    feedback: Optional[str] = None
    feedback_at: Optional[str] = None

    certificate_id: Optional[str] = None
    certificate_issued_at: Optional[str] = None

    enrollment_source: str = "direct"  # direct | waitlist_promotion | invitation
    notes: str = ""
    reminders_sent: int = 0
    last_reminder_at: Optional[str] = None

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # Workshop snapshot when the backend nests it alongside the enrollment
    workshop: Optional[Dict[str, Any]] = None


class WorkshopCertificate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    workshop_id: str
    workshop_title: str = ""
    user_id: str
    user_name: str = ""
    user_email: str = ""

    certificate_number: str = ""
    issued_at: Optional[str] = None
    valid_until: Optional[str] = None

    verification_code: str = ""
    is_verified: bool = False
    verified_at: Optional[str] = None

    template_id: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None

    pdf_url: Optional[str] = None
    image_url: Optional[str] = None
    shareable_url: Optional[str] = None

    issuer_name: str = ""
    issuer_title: Optional[str] = None
    organization_name: str = ""
    organization_logo: Optional[str] = None

    skills_acquired: Optional[List[str]] = None
    competency_level: Optional[str] = None

    completed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class WorkshopFilters(CamelModel):
    status: Optional[WorkshopStatus] = None
    category: Optional[WorkshopCategory] = None
    creator_id: Optional[str] = None
    search: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None


class Pagination(CamelModel):
    current_page: int = 1
    total_pages: int = 1
    total_items: int = 0
    has_more: bool = False
    limit: int = 0


class FacetCount(BaseModel):
    value: str
    count: int = 0


class SearchFacets(BaseModel):
    categories: List[FacetCount] = Field(default_factory=list)
    difficulties: List[FacetCount] = Field(default_factory=list)
    formats: List[FacetCount] = Field(default_factory=list)
    tags: List[FacetCount] = Field(default_factory=list)


class WorkshopSearchResult(BaseModel):
    workshops: List[Workshop] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
    filters: SearchFacets = Field(default_factory=SearchFacets)
    applied_filters: Optional[WorkshopFilters] = None


class WorkshopStats(CamelModel):
    total_enrollments: int = 0
    active_enrollments: int = 0
    completed_enrollments: int = 0
    waitlist_count: int = 0
    certificates_issued: int = 0
    attendance_rate: float = 0
    completion_rate: float = 0
    average_rating: float = 0
    total_ratings: int = 0
    no_show_rate: float = 0


class UserWorkshopStats(CamelModel):
    total_enrollments: int = 0
    completed_workshops: int = 0
    certificates_earned: int = 0
    upcoming_workshops: int = 0
    average_rating: float = 0
    total_hours_learned: float = 0
    skills_acquired: List[str] = Field(default_factory=list)


class EnrollmentStatusResult(BaseModel):
    enrolled: bool
    status: Optional[EnrollmentStatus] = None


class CertificateVerification(CamelModel):
    is_valid: bool
    outcome: VerificationOutcome
    certificate: Optional[WorkshopCertificate] = None
    error: Optional[str] = None


class ShareLink(CamelModel):
    shareable_url: str


class CompletionResult(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    workshop: Optional[Dict[str, Any]] = None
    certificate_id: Optional[str] = None


# Web surface request/response shapes

class WorkshopUpdateRequest(BaseModel):
    updates: Dict[str, Any]
    changes: Optional[List[str]] = None


class CancelWorkshopRequest(BaseModel):
    reason: Optional[str] = None


class UserActionRequest(CamelModel):
    user_id: str


class WorkshopView(CamelModel):
    workshop: Workshop
    display_status: str
    is_enrolled: bool
    can_enroll: bool
    formatted_date: str
    formatted_time: str


class WorkshopListView(CamelModel):
    workshops: List[WorkshopView]
    has_more: bool
    error: Optional[str] = None


class ActionResult(CamelModel):
    success: bool
    error: Optional[str] = None
    workshop: Optional[Workshop] = None


class DashboardView(CamelModel):
    enrolled_workshops: List[Workshop]
    upcoming_workshops: List[Workshop]
    completed_workshops: List[Workshop]
    certificates: List[WorkshopCertificate]
    stats: Optional[UserWorkshopStats] = None


class WorkshopEditRequest(BaseModel):
    """Raw edit-form values; list fields may be newline (or, for tags, comma) separated text."""
    values: Dict[str, Any]
    touched: List[str] = Field(default_factory=list)


class CertificateUrl(BaseModel):
    url: Optional[str] = None
