"""
Per-user workshop state with optimistic local reconciliation.

Every mutating action runs: identity guard, in-flight check, loading flag and
error reset, access-layer call, then a patch of the in-memory collections
instead of a full refetch. Failures land as strings in ``error`` or
``enrollment_error``; nothing is raised to the caller.
"""

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from app.core.exceptions import DuplicateActionError, StoreClosedError
from app.modules.auth.schemas import Identity
from app.modules.workshops import display
from app.modules.workshops.models import (
    ACTIVE_ENROLLMENT_STATUSES,
    EnrollmentStatus,
    VerificationOutcome,
    WorkshopStatus,
)
from app.modules.workshops.normalization import normalize_workshop, to_iso_string, utc_now
from app.modules.workshops.schemas import (
    CertificateVerification,
    EnrollmentStatusResult,
    ShareLink,
    UserWorkshopStats,
    Workshop,
    WorkshopCertificate,
    WorkshopEnrollment,
    WorkshopFilters,
    WorkshopFormData,
    WorkshopSearchResult,
    WorkshopStats,
)
from app.modules.workshops.service import WorkshopApiService

logger = logging.getLogger(__name__)

GENERAL = "error"
ENROLLMENT = "enrollment_error"


class WorkshopStore:
    def __init__(
        self,
        api: WorkshopApiService,
        identity: Optional[Identity] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.api = api
        self.identity = identity
        self.clock = clock

        self.workshops: List[Workshop] = []
        self.current_workshop: Optional[Workshop] = None
        self.user_created_workshops: List[Workshop] = []
        self.user_enrollments: List[WorkshopEnrollment] = []
        self.user_certificates: List[WorkshopCertificate] = []
        self.participants: List[Dict[str, Any]] = []

        self.loading = False
        self.enrollment_loading = False
        self.certificate_loading = False
        self.participants_loading = False

        self.error: Optional[str] = None
        self.enrollment_error: Optional[str] = None

        self.has_more = True
        self.search_result: Optional[WorkshopSearchResult] = None
        self.workshop_stats: Optional[WorkshopStats] = None
        self.user_stats: Optional[UserWorkshopStats] = None

        self.user_data_loaded = False
        self.closed = False
        self._in_flight: Set[Tuple[str, ...]] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def uid(self) -> Optional[str]:
        return self.identity.uid if self.identity else None

    # Plumbing

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        """Run an access-layer call as a task that close() can cancel."""
        if self.closed:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise StoreClosedError()
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self.closed:
                raise StoreClosedError()
            raise
        finally:
            self._tasks.discard(task)

    @contextmanager
    def _exclusive(self, *key: str):
        if key in self._in_flight:
            raise DuplicateActionError("This action is already in progress for this workshop")
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    def _set_error(self, slot: str, exc: Exception, action: str) -> None:
        if self.closed:
            logger.debug(f"Dropping error for '{action}' on closed store: {exc}")
            return
        logger.error(f"Workshop operation error ({action}): {exc}")
        setattr(self, slot, str(exc) or "An unexpected error occurred")

    def _require_identity(self, slot: str, message: str) -> bool:
        if self.uid:
            return True
        setattr(self, slot, message)
        return False

    def _replace(self, workshop_id: str, patch: Callable[[Workshop], Workshop]) -> None:
        self.workshops = [patch(w) if w.id == workshop_id else w for w in self.workshops]
        self.user_created_workshops = [
            patch(w) if w.id == workshop_id else w for w in self.user_created_workshops
        ]
        if self.current_workshop is not None and self.current_workshop.id == workshop_id:
            self.current_workshop = patch(self.current_workshop)

    def _shift_enrollments(self, workshop_id: str, delta: int) -> None:
        def patch(w: Workshop) -> Workshop:
            return w.model_copy(update={"current_enrollments": max(0, w.current_enrollments + delta)})

        self.workshops = [patch(w) if w.id == workshop_id else w for w in self.workshops]
        if self.current_workshop is not None and self.current_workshop.id == workshop_id:
            self.current_workshop = patch(self.current_workshop)

    # Workshop operations

    async def get_workshops(self, filters: Optional[WorkshopFilters] = None) -> None:
        if not self.uid:
            logger.debug("User not authenticated, skipping workshop fetch")
            self.workshops = []
            return
        self.loading = True
        self.error = None
        try:
            result = await self._call(self.api.get_workshops(filters, self.uid))
            if filters and filters.page and filters.page > 1:
                self.workshops = self.workshops + result.workshops
            else:
                self.workshops = result.workshops
            self.has_more = result.pagination.has_more
            self.search_result = result
        except Exception as e:
            self._set_error(GENERAL, e, "fetch workshops")
        finally:
            self.loading = False

    async def get_workshop(self, workshop_id: str) -> Optional[Workshop]:
        self.loading = True
        self.error = None
        try:
            workshop = await self._call(self.api.get_workshop_by_id(workshop_id))
            self.current_workshop = workshop
            return workshop
        except Exception as e:
            self._set_error(GENERAL, e, "fetch workshop")
            if not self.closed:
                self.current_workshop = None
            return None
        finally:
            self.loading = False

    async def refresh_workshop(self, workshop_id: str) -> None:
        await self.get_workshop(workshop_id)

    async def get_workshop_participants(self, workshop_id: str) -> List[Dict[str, Any]]:
        if not self._require_identity(GENERAL, "User must be logged in to view participants"):
            return []
        self.participants_loading = True
        self.error = None
        try:
            self.participants = await self._call(self.api.get_workshop_participants(workshop_id, self.uid))
            return self.participants
        except Exception as e:
            self._set_error(GENERAL, e, "fetch participants")
            return []
        finally:
            self.participants_loading = False

    async def create_workshop(self, form: WorkshopFormData) -> Optional[Workshop]:
        if not self._require_identity(GENERAL, "You must be logged in to create a workshop"):
            return None
        self.loading = True
        self.error = None
        try:
            now = to_iso_string(self.clock())
            payload = {
                **form.to_payload(),
                "creatorId": self.identity.uid,
                "creatorName": self.identity.display_name,
                "creatorAvatar": self.identity.photo_url,
                "currentEnrollments": 0,
                "waitlistCount": 0,
                "status": WorkshopStatus.DRAFT.value,
                "createdAt": now,
                "updatedAt": now,
            }
            workshop = await self._call(self.api.create_workshop(payload, self.uid))
            self.workshops = [workshop] + self.workshops
            self.user_created_workshops = [workshop] + self.user_created_workshops
            return workshop
        except Exception as e:
            self._set_error(GENERAL, e, "create workshop")
            return None
        finally:
            self.loading = False

    async def update_workshop(
        self, workshop_id: str, updates: Dict[str, Any], changes: Optional[List[str]] = None
    ) -> Optional[Workshop]:
        if not self._require_identity(GENERAL, "You must be logged in to update a workshop"):
            return None
        try:
            with self._exclusive("workshop", workshop_id):
                self.loading = True
                self.error = None
                try:
                    workshop = await self._call(
                        self.api.update_workshop(workshop_id, updates, changes, self.uid)
                    )
                finally:
                    self.loading = False
        except Exception as e:
            self._set_error(GENERAL, e, "update workshop")
            return None
        self._replace(workshop_id, lambda _: workshop)
        return workshop

    async def publish_workshop(self, workshop_id: str) -> Optional[Workshop]:
        if not self._require_identity(GENERAL, "You must be logged in to publish a workshop"):
            return None
        try:
            with self._exclusive("workshop", workshop_id):
                self.loading = True
                self.error = None
                try:
                    workshop = await self._call(self.api.publish_workshop(workshop_id, self.uid))
                finally:
                    self.loading = False
        except Exception as e:
            self._set_error(GENERAL, e, "publish workshop")
            return None
        self._replace(workshop_id, lambda _: workshop)
        return workshop

    async def delete_workshop(self, workshop_id: str) -> bool:
        try:
            with self._exclusive("workshop", workshop_id):
                self.loading = True
                self.error = None
                try:
                    await self._call(self.api.delete_workshop(workshop_id))
                finally:
                    self.loading = False
        except Exception as e:
            self._set_error(GENERAL, e, "delete workshop")
            return False
        self.workshops = [w for w in self.workshops if w.id != workshop_id]
        self.user_created_workshops = [w for w in self.user_created_workshops if w.id != workshop_id]
        if self.current_workshop is not None and self.current_workshop.id == workshop_id:
            self.current_workshop = None
        return True

    async def cancel_workshop(self, workshop_id: str, reason: Optional[str] = None) -> bool:
        try:
            with self._exclusive("workshop", workshop_id):
                self.error = None
                await self._call(self.api.cancel_workshop(workshop_id, reason))
        except Exception as e:
            self._set_error(GENERAL, e, "cancel workshop")
            return False
        self._replace(workshop_id, lambda w: w.model_copy(update={"status": WorkshopStatus.CANCELLED}))
        return True

    async def get_user_created_workshops(self) -> None:
        if not self.uid:
            self.user_created_workshops = []
            return
        self.loading = True
        self.error = None
        try:
            self.user_created_workshops = await self._call(self.api.get_user_created_workshops(self.uid))
        except Exception as e:
            self._set_error(GENERAL, e, "fetch created workshops")
            if not self.closed:
                self.user_created_workshops = []
        finally:
            self.loading = False

    # Enrollment operations

    async def enroll_in_workshop(self, workshop_id: str) -> bool:
        if not self._require_identity(ENROLLMENT, "You must be logged in to enroll"):
            return False
        try:
            with self._exclusive("enrollment", workshop_id):
                self.enrollment_loading = True
                self.enrollment_error = None
                try:
                    await self._call(self.api.enroll_in_workshop(workshop_id, self.uid))
                    self._shift_enrollments(workshop_id, 1)
                    await self.get_user_enrollments()
                finally:
                    self.enrollment_loading = False
        except Exception as e:
            self._set_error(ENROLLMENT, e, "enroll in workshop")
            return False
        return True

    async def unenroll_from_workshop(self, workshop_id: str) -> bool:
        if not self._require_identity(ENROLLMENT, "You must be logged in to unenroll"):
            return False
        try:
            with self._exclusive("enrollment", workshop_id):
                self.enrollment_loading = True
                self.enrollment_error = None
                try:
                    await self._call(self.api.unenroll_from_workshop(workshop_id, self.uid))
                    self._shift_enrollments(workshop_id, -1)
                    await self.get_user_enrollments()
                finally:
                    self.enrollment_loading = False
        except Exception as e:
            self._set_error(ENROLLMENT, e, "unenroll from workshop")
            return False
        return True

    async def get_enrollment_status(self, workshop_id: str) -> EnrollmentStatusResult:
        if not self.uid:
            return EnrollmentStatusResult(enrolled=False, status=None)
        try:
            return await self._call(self.api.get_enrollment_status(workshop_id, self.uid))
        except Exception as e:
            logger.error(f"Failed to get enrollment status: {e}")
            return EnrollmentStatusResult(enrolled=False, status=None)

    async def get_user_enrollments(self, status: Optional[EnrollmentStatus] = None) -> None:
        if not self.uid:
            self.user_enrollments = []
            return
        try:
            enrollments = await self._call(self.api.get_user_enrollments(self.uid, status))
        except Exception as e:
            if self.closed:
                return
            logger.error(f"Failed to get user enrollments: {e}")
            enrollments = []
        self.user_enrollments = enrollments

    async def get_workshop_enrollments(self, workshop_id: str) -> List[WorkshopEnrollment]:
        try:
            return await self._call(self.api.get_workshop_enrollments(workshop_id))
        except Exception as e:
            logger.error(f"Failed to get workshop enrollments: {e}")
            return []

    # Certificate operations

    async def get_user_certificates(self) -> None:
        if not self.uid:
            self.user_certificates = []
            return
        self.certificate_loading = True
        try:
            self.user_certificates = await self._call(self.api.get_user_certificates(self.uid))
        except Exception as e:
            logger.error(f"Failed to get user certificates: {e}")
            if not self.closed:
                self.user_certificates = []
        finally:
            self.certificate_loading = False

    async def download_certificate(self, certificate_id: str) -> Optional[str]:
        """URL of the certificate PDF, or its shareable page when no PDF exists."""
        try:
            certificate = await self._call(self.api.get_certificate(certificate_id))
        except Exception as e:
            logger.error(f"Failed to download certificate: {e}")
            return None
        return certificate.pdf_url or certificate.shareable_url or None

    async def verify_certificate(self, verification_code: str) -> CertificateVerification:
        try:
            return await self._call(self.api.verify_certificate(verification_code))
        except StoreClosedError as e:
            return CertificateVerification(is_valid=False, outcome=VerificationOutcome.UNAVAILABLE, error=str(e))

    async def share_certificate(self, certificate_id: str) -> Optional[ShareLink]:
        try:
            return await self._call(self.api.share_certificate(certificate_id))
        except Exception as e:
            self._set_error(GENERAL, e, "share certificate")
            return None

    # Workshop management (creators)

    async def mark_workshop_completed(self, workshop_id: str, user_id: str) -> bool:
        try:
            with self._exclusive("completion", workshop_id, user_id):
                await self._call(self.api.mark_workshop_completed(workshop_id, user_id))
                if self.uid == user_id:
                    await self.get_user_enrollments()
        except Exception as e:
            self._set_error(GENERAL, e, "mark workshop completed")
            return False
        return True

    async def issue_certificate(self, workshop_id: str, user_id: str) -> Optional[WorkshopCertificate]:
        try:
            with self._exclusive("certificate", workshop_id, user_id):
                certificate = await self._call(self.api.issue_certificate(workshop_id, user_id))
                if self.uid == user_id:
                    await self.get_user_certificates()
        except Exception as e:
            self._set_error(GENERAL, e, "issue certificate")
            return None
        return certificate

    # Statistics

    async def get_workshop_stats(self, workshop_id: str) -> Optional[WorkshopStats]:
        try:
            self.workshop_stats = await self._call(self.api.get_workshop_stats(workshop_id))
        except Exception as e:
            logger.error(f"Failed to get workshop stats for {workshop_id}: {e}")
            if not self.closed:
                self.workshop_stats = None
            return None
        return self.workshop_stats

    async def get_user_workshop_stats(self) -> Optional[UserWorkshopStats]:
        if not self.uid:
            return None
        try:
            self.user_stats = await self._call(self.api.get_user_workshop_stats(self.uid))
        except Exception as e:
            logger.error(f"Failed to get user workshop stats: {e}")
            return None
        return self.user_stats

    async def load_user_data(self) -> None:
        """Enrollments, certificates and stats for the current user, fetched together."""
        if not self.uid:
            return
        await asyncio.gather(
            self.get_user_enrollments(),
            self.get_user_certificates(),
            self.get_user_workshop_stats(),
            return_exceptions=True,
        )
        self.user_data_loaded = True

    # Derived queries

    def is_enrolled(self, workshop_id: str) -> bool:
        if not isinstance(self.user_enrollments, list):
            return False
        return any(
            e.workshop_id == workshop_id and e.status in ACTIVE_ENROLLMENT_STATUSES
            for e in self.user_enrollments
        )

    def can_enroll(self, workshop: Workshop) -> bool:
        if not self.uid:
            return False
        if workshop.status != WorkshopStatus.PUBLISHED:
            return False
        if workshop.creator_id == self.uid:
            return False
        if self.is_enrolled(workshop.id):
            return False
        now = self.clock()
        if display.enrollment_deadline_passed(workshop, now):
            return False
        if display.has_started(workshop, now):
            return False
        return workshop.current_enrollments < workshop.max_participants or workshop.allow_waitlist

    def get_workshop_status(self, workshop: Workshop) -> str:
        return display.get_display_status(workshop, self.clock())

    def format_workshop_date(self, workshop: Workshop) -> str:
        return display.format_workshop_date(workshop)

    def format_workshop_time(self, workshop: Workshop) -> str:
        return display.format_workshop_time(workshop)

    def _workshops_with_enrollment(self, statuses) -> List[Workshop]:
        if not isinstance(self.user_enrollments, list):
            return []
        known = {w.id: w for w in self.workshops}
        result = []
        for enrollment in self.user_enrollments:
            if enrollment.status not in statuses:
                continue
            workshop = known.get(enrollment.workshop_id)
            if workshop is None and enrollment.workshop:
                # Snapshot nested in the enrollment when the list has not been loaded
                snapshot = {"id": enrollment.workshop_id, **enrollment.workshop}
                workshop = Workshop.model_validate(normalize_workshop(snapshot, now=self.clock()))
            if workshop is not None:
                result.append(workshop)
        return result

    @property
    def enrolled_workshops(self) -> List[Workshop]:
        return self._workshops_with_enrollment(ACTIVE_ENROLLMENT_STATUSES)

    @property
    def upcoming_workshops(self) -> List[Workshop]:
        now = self.clock()
        return [
            w
            for w in self.enrolled_workshops
            if w.status != WorkshopStatus.CANCELLED and not display.has_started(w, now)
            and display.workshop_start(w) is not None
        ]

    @property
    def completed_workshops(self) -> List[Workshop]:
        return self._workshops_with_enrollment({EnrollmentStatus.COMPLETED})

    # Reset

    def clear_error(self) -> None:
        self.error = None
        self.enrollment_error = None

    def reset_workshops(self) -> None:
        self.workshops = []
        self.current_workshop = None
        self.search_result = None
        self.has_more = True
        self.error = None

    async def close(self) -> None:
        """Abort every in-flight call. Aborted actions resolve to failure without reconciling."""
        if self.closed:
            return
        self.closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug(f"Closed workshop store for {self.uid or 'anonymous'} ({len(tasks)} call(s) aborted)")
