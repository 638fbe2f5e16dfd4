import asyncio
import httpx
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from app.config import settings
from app.core.exceptions import CertificateError, EnrollmentError, NotAuthenticatedError
from app.core.http_client import raise_for_status, send
from app.modules.notifications.models import WorkshopNotificationType
from app.modules.notifications.schemas import WorkshopNotificationData
from app.modules.notifications.service import NotificationService
from app.modules.workshops.display import plan_reminders
from app.modules.workshops.models import EnrollmentStatus, VerificationOutcome, WorkshopStatus
from app.modules.workshops.normalization import (
    normalize_certificate,
    normalize_enrollments,
    normalize_user_stats,
    normalize_workshop,
    normalize_workshop_stats,
    parse_timestamp,
    utc_now,
)
from app.modules.workshops.schemas import (
    CertificateVerification,
    CompletionResult,
    EnrollmentStatusResult,
    FacetCount,
    Pagination,
    SearchFacets,
    ShareLink,
    UserWorkshopStats,
    Workshop,
    WorkshopCertificate,
    WorkshopEnrollment,
    WorkshopFilters,
    WorkshopSearchResult,
    WorkshopStats,
)

logger = logging.getLogger(__name__)

# Encoded positionally in the path, never in the query string
EXCLUDED_QUERY_KEYS = frozenset({"uid", "status"})

N = WorkshopNotificationType


def _query_value(value: Any) -> str:
    value = getattr(value, "value", value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query_params(filters: Optional[Union[WorkshopFilters, Dict[str, Any]]]) -> Dict[str, str]:
    """Serialize every present, non-null filter except uid/status."""
    if not filters:
        return {}
    if isinstance(filters, WorkshopFilters):
        values = filters.model_dump(by_alias=True, exclude_none=True, mode="json")
    else:
        values = dict(filters)
    return {
        key: _query_value(value)
        for key, value in values.items()
        if value is not None and key not in EXCLUDED_QUERY_KEYS
    }


def _facets(raw: Any) -> SearchFacets:
    if not isinstance(raw, dict):
        return SearchFacets()
    return SearchFacets(**{
        key: [FacetCount.model_validate(item) for item in (raw.get(key) or []) if isinstance(item, dict)]
        for key in ("categories", "difficulties", "formats", "tags")
    })


def notification_data_for(workshop: Workshop, **extra) -> WorkshopNotificationData:
    return WorkshopNotificationData(
        workshop_id=workshop.id,
        workshop_title=workshop.title,
        workshop_date=workshop.scheduled_date,
        workshop_time=workshop.start_time,
        creator_id=workshop.creator_id or None,
        creator_name=workshop.creator_name or None,
        **extra,
    )


class WorkshopApiService:
    """Stateless facade over the backend's workshop, enrollment, certificate and stats endpoints.

    Every method either returns parsed data or raises a WorkshopError subclass.
    Notification side effects go through ``notifier`` and never fail the primary call.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        notifier: Optional[NotificationService] = None,
        base_url: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.base_url = base_url or settings.workshops_url
        self.notifier = notifier or NotificationService(client)
        self.clock = clock

    async def _request(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        response = await send(self.client, method, f"{self.base_url}{path}", action, **kwargs)
        raise_for_status(response, action)
        return response

    async def _best_effort(self, effect: Awaitable[Any], description: str) -> None:
        try:
            await effect
        except Exception as e:
            logger.warning(f"Secondary effect '{description}' failed: {e}")

    def _workshop(self, raw: Dict[str, Any]) -> Workshop:
        return Workshop.model_validate(normalize_workshop(raw, now=self.clock()))

    # Workshop CRUD

    async def get_workshops(
        self,
        filters: Optional[Union[WorkshopFilters, Dict[str, Any]]] = None,
        uid: Optional[str] = None,
    ) -> WorkshopSearchResult:
        if not uid:
            raise NotAuthenticatedError("User ID is required to fetch available workshops")
        response = await self._request(
            "GET", f"/{uid}/available", "fetch workshops", params=build_query_params(filters)
        )
        data = response.json()
        return WorkshopSearchResult(
            workshops=[self._workshop(w) for w in data.get("workshops") or []],
            pagination=Pagination.model_validate(data.get("pagination") or {}),
            filters=_facets(data.get("filters")),
            applied_filters=filters if isinstance(filters, WorkshopFilters) else None,
        )

    async def get_workshop(self, workshop_id: str) -> Workshop:
        """List-shape single workshop."""
        response = await self._request("GET", f"/{workshop_id}", "fetch workshop")
        return self._workshop(response.json())

    async def get_workshop_by_id(self, workshop_id: str) -> Workshop:
        """Detail-shape single workshop, nested under ``workshop`` and normalized."""
        response = await self._request("GET", f"/workshop/{workshop_id}", "fetch workshop")
        data = response.json()
        return self._workshop(data.get("workshop") or {})

    async def get_workshop_participants(self, workshop_id: str, uid: str) -> List[Dict[str, Any]]:
        response = await self._request(
            "GET", f"/{workshop_id}/{uid}/participants", "fetch workshop participants"
        )
        return response.json().get("participants") or []

    async def create_workshop(self, workshop_data: Dict[str, Any], uid: str) -> Workshop:
        response = await self._request("POST", f"/{uid}", "create workshop", json=workshop_data)
        workshop = self._workshop(response.json())
        if workshop.status == WorkshopStatus.PENDING:
            await self.notifier.create_workshop_notification(
                workshop.creator_id, N.CREATOR_APPROVED, notification_data_for(workshop)
            )
        return workshop

    async def get_user_created_workshops(self, user_id: str) -> List[Workshop]:
        response = await self._request("GET", f"/{user_id}/created", "fetch user created workshops")
        return [self._workshop(w) for w in response.json().get("workshops") or []]

    async def update_workshop(
        self,
        workshop_id: str,
        updates: Dict[str, Any],
        changes: Optional[List[str]] = None,
        uid: Optional[str] = None,
    ) -> Workshop:
        path = f"/{workshop_id}/{uid}" if uid else f"/{workshop_id}"
        response = await self._request("PUT", path, "update workshop", json=updates)
        workshop = self._workshop(response.json())
        if changes:
            await self._best_effort(
                self.notify_workshop_updated(workshop_id, changes), f"notify update of {workshop_id}"
            )
        return workshop

    async def publish_workshop(self, workshop_id: str, uid: str) -> Workshop:
        response = await self._request("PUT", f"/{workshop_id}/{uid}/publish", "publish workshop")
        workshop = self._workshop(response.json())
        if workshop.status == WorkshopStatus.PUBLISHED:
            logger.info(f"Workshop {workshop.title} has been published")
        return workshop

    async def delete_workshop(self, workshop_id: str) -> None:
        await self._request("DELETE", f"/{workshop_id}", "delete workshop")

    # Enrollment

    async def enroll_in_workshop(self, workshop_id: str, user_id: str) -> Dict[str, Any]:
        response = await send(
            self.client,
            "POST",
            f"{self.base_url}/{workshop_id}/{user_id}/enroll",
            "enroll in workshop",
            json={"userId": user_id},
        )
        if response.status_code == 409:
            raise EnrollmentError("Already enrolled in this workshop", code="already_enrolled")
        raise_for_status(response, "enroll in workshop")
        result = response.json() or {}

        raw_workshop = result.get("workshop") if isinstance(result, dict) else None
        if raw_workshop:
            workshop = self._workshop(raw_workshop)
            await self.notifier.create_workshop_notification(
                user_id, N.ENROLLMENT_CONFIRMATION, notification_data_for(workshop)
            )
            for kind, moment in plan_reminders(workshop, self.clock()):
                logger.debug(f"Reminder {kind} for user {user_id} on workshop {workshop_id} due at {moment.isoformat()}")
        return result

    async def unenroll_from_workshop(self, workshop_id: str, user_id: str) -> None:
        await self._request("DELETE", f"/{workshop_id}/{user_id}/enroll", "unenroll from workshop")

    async def get_workshop_enrollments(self, workshop_id: str) -> List[WorkshopEnrollment]:
        response = await self._request("GET", f"/{workshop_id}/enrollments", "fetch enrollments")
        return [WorkshopEnrollment.model_validate(e) for e in normalize_enrollments(response.json())]

    async def get_user_enrollments(
        self, user_id: str, status: Optional[EnrollmentStatus] = None
    ) -> List[WorkshopEnrollment]:
        # The backend has no status filter; it is applied here
        response = await self._request("GET", f"/{user_id}/enrollments", "fetch user enrollments")
        enrollments = [WorkshopEnrollment.model_validate(e) for e in normalize_enrollments(response.json())]
        if status:
            return [e for e in enrollments if e.status == status]
        return enrollments

    async def get_enrollment_status(self, workshop_id: str, user_id: str) -> EnrollmentStatusResult:
        response = await send(
            self.client,
            "GET",
            f"{self.base_url}/{workshop_id}/enrollment/{user_id}",
            "fetch enrollment status",
        )
        if response.status_code == 404:
            return EnrollmentStatusResult(enrolled=False, status=None)
        raise_for_status(response, "fetch enrollment status")
        return EnrollmentStatusResult(enrolled=True, status=response.json().get("status"))

    # Certificates

    async def get_certificate(self, certificate_id: str) -> WorkshopCertificate:
        response = await self._request("GET", f"/certificates/{certificate_id}", "fetch certificate")
        return WorkshopCertificate.model_validate(normalize_certificate(response.json()))

    async def get_user_certificates(self, user_id: str) -> List[WorkshopCertificate]:
        response = await self._request("GET", f"/{user_id}/certificates", "fetch user certificates")
        return [WorkshopCertificate.model_validate(normalize_certificate(c)) for c in response.json()]

    async def issue_certificate(self, workshop_id: str, user_id: str) -> WorkshopCertificate:
        response = await self._request(
            "POST", f"/{workshop_id}/certificate", "issue certificate", json={"userId": user_id}
        )
        certificate = WorkshopCertificate.model_validate(normalize_certificate(response.json()))
        await self._best_effort(
            self.notify_certificate_issued(certificate.id, user_id), f"notify certificate {certificate.id}"
        )
        return certificate

    async def download_certificate(self, certificate_id: str) -> bytes:
        response = await self._request(
            "GET", f"/certificates/{certificate_id}/download", "download certificate"
        )
        return response.content

    async def verify_certificate(self, verification_code: str) -> CertificateVerification:
        """Outcome-valued verification; never raises."""
        try:
            response = await send(
                self.client,
                "GET",
                f"{self.base_url}/certificates/verify/{verification_code}",
                "verify certificate",
            )
            if response.status_code == 404:
                return CertificateVerification(
                    is_valid=False,
                    outcome=VerificationOutcome.NOT_FOUND,
                    error="Certificate not found or verification code is invalid",
                )
            raise_for_status(response, "verify certificate")
            certificate = WorkshopCertificate.model_validate(normalize_certificate(response.json()))

            valid_until = parse_timestamp(certificate.valid_until)
            if valid_until is not None and valid_until < self.clock():
                return CertificateVerification(
                    is_valid=False,
                    outcome=VerificationOutcome.EXPIRED,
                    certificate=certificate,
                    error="Certificate has expired",
                )
            if not certificate.is_verified:
                return CertificateVerification(
                    is_valid=False,
                    outcome=VerificationOutcome.UNVERIFIED,
                    certificate=certificate,
                    error="Certificate is not verified",
                )
            return CertificateVerification(is_valid=True, outcome=VerificationOutcome.VALID, certificate=certificate)
        except Exception as e:
            logger.error(f"Certificate verification error for code {verification_code}: {e}")
            return CertificateVerification(
                is_valid=False,
                outcome=VerificationOutcome.UNAVAILABLE,
                error="Failed to verify certificate. Please try again later.",
            )

    async def get_certificate_by_verification_code(self, verification_code: str) -> WorkshopCertificate:
        response = await send(
            self.client,
            "GET",
            f"{self.base_url}/certificates/verify/{verification_code}",
            "fetch certificate",
        )
        if response.status_code == 404:
            raise CertificateError("Certificate not found", code="certificate_not_found")
        raise_for_status(response, "fetch certificate")
        return WorkshopCertificate.model_validate(normalize_certificate(response.json()))

    async def share_certificate(self, certificate_id: str) -> ShareLink:
        response = await self._request(
            "POST", f"/certificates/{certificate_id}/share", "generate shareable link"
        )
        return ShareLink.model_validate(response.json())

    # Workshop management

    async def mark_workshop_completed(self, workshop_id: str, user_id: str) -> CompletionResult:
        response = await self._request(
            "POST", f"/{workshop_id}/complete", "mark workshop as completed", json={"userId": user_id}
        )
        result = CompletionResult.model_validate(response.json() or {})
        if result.workshop:
            workshop = self._workshop(result.workshop)
            await self.notifier.create_workshop_notification(
                user_id,
                N.COMPLETED,
                notification_data_for(workshop, certificate_id=result.certificate_id),
            )
        return result

    async def cancel_workshop(self, workshop_id: str, reason: Optional[str] = None) -> None:
        await self._request("POST", f"/{workshop_id}/cancel", "cancel workshop", json={"reason": reason})
        await self._best_effort(
            self.notify_workshop_cancelled(workshop_id, reason), f"notify cancellation of {workshop_id}"
        )

    async def approve_workshop_creator(self, user_id: str) -> None:
        await self._request("POST", "/creators/approve", "approve workshop creator", json={"userId": user_id})
        await self.notifier.create_workshop_notification(
            user_id, N.CREATOR_APPROVED, WorkshopNotificationData()
        )

    # Notification fan-out

    async def _notify_enrolled(self, workshop_id: str, sub_type: WorkshopNotificationType, **extra) -> int:
        """Notify every participant with status "enrolled". Returns the number notified."""
        workshop = await self.get_workshop(workshop_id)
        enrollments = await self.get_workshop_enrollments(workshop_id)
        data = notification_data_for(workshop, **extra)
        recipients = [e.user_id for e in enrollments if e.status == EnrollmentStatus.ENROLLED]
        await asyncio.gather(
            *(self.notifier.create_workshop_notification(user_id, sub_type, data) for user_id in recipients)
        )
        return len(recipients)

    async def notify_workshop_starting(self, workshop_id: str) -> int:
        workshop = await self.get_workshop(workshop_id)
        return await self._notify_enrolled(workshop_id, N.STARTING_NOW, meeting_link=workshop.meeting_link)

    async def notify_workshop_reminder(self, workshop_id: str, reminder_type: WorkshopNotificationType) -> int:
        if reminder_type not in (N.REMINDER_24H, N.REMINDER_1H):
            raise ValueError(f"Not a reminder type: {reminder_type}")
        return await self._notify_enrolled(workshop_id, reminder_type)

    async def notify_workshop_updated(self, workshop_id: str, changes: List[str]) -> int:
        return await self._notify_enrolled(workshop_id, N.UPDATED, changes=changes)

    async def notify_workshop_cancelled(self, workshop_id: str, reason: Optional[str] = None) -> int:
        return await self._notify_enrolled(workshop_id, N.CANCELLED, cancellation_reason=reason)

    async def notify_certificate_issued(self, certificate_id: str, user_id: str) -> None:
        certificate = await self.get_certificate(certificate_id)
        await self.notifier.create_workshop_notification(
            user_id,
            N.CERTIFICATE_ISSUED,
            WorkshopNotificationData(
                workshop_id=certificate.workshop_id,
                workshop_title=certificate.workshop_title,
                certificate_id=certificate.id,
                creator_id=settings.system_sender_id,
                creator_name=settings.system_sender_name,
            ),
        )

    # Statistics

    async def get_workshop_stats(self, workshop_id: str) -> WorkshopStats:
        response = await self._request("GET", f"/{workshop_id}/stats", "fetch workshop stats")
        return WorkshopStats.model_validate(normalize_workshop_stats(response.json()))

    async def get_user_workshop_stats(self, user_id: str) -> UserWorkshopStats:
        response = await self._request("GET", f"/{user_id}/stats", "fetch user workshop stats")
        return UserWorkshopStats.model_validate(normalize_user_stats(response.json()))
