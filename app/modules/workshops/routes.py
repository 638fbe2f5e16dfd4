from fastapi import APIRouter, Depends, HTTPException, Query, Response
from app.core.dependencies import get_identity, get_workshop_api, get_workshop_store, require_identity
from app.modules.auth.schemas import Identity
from app.modules.notifications.models import WorkshopNotificationType
from app.modules.workshops.editor import diff_workshop_updates, process_edit, validate_edit
from app.modules.workshops.models import EnrollmentStatus, WorkshopCategory, WorkshopStatus
from app.modules.workshops.schemas import (
    ActionResult,
    CancelWorkshopRequest,
    CertificateUrl,
    CertificateVerification,
    DashboardView,
    EnrollmentStatusResult,
    ShareLink,
    UserActionRequest,
    UserWorkshopStats,
    Workshop,
    WorkshopCertificate,
    WorkshopEditRequest,
    WorkshopEnrollment,
    WorkshopFilters,
    WorkshopFormData,
    WorkshopListView,
    WorkshopStats,
    WorkshopUpdateRequest,
    WorkshopView,
)
from app.modules.workshops.service import WorkshopApiService
from app.modules.workshops.store import WorkshopStore
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workshops", tags=["workshops"])


def _view(store: WorkshopStore, workshop: Workshop) -> WorkshopView:
    return WorkshopView(
        workshop=workshop,
        display_status=store.get_workshop_status(workshop),
        is_enrolled=store.is_enrolled(workshop.id),
        can_enroll=store.can_enroll(workshop),
        formatted_date=store.format_workshop_date(workshop),
        formatted_time=store.format_workshop_time(workshop),
    )


def _result(response: Response, success: bool, error: Optional[str], workshop: Optional[Workshop] = None) -> ActionResult:
    if not success:
        response.status_code = 400
    return ActionResult(success=success, error=None if success else error, workshop=workshop)


@router.get("", response_model=WorkshopListView)
async def list_workshops(
    status: Optional[WorkshopStatus] = None,
    category: Optional[WorkshopCategory] = None,
    creator_id: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    store: WorkshopStore = Depends(get_workshop_store),
):
    """Available workshops with display status and enrollability for the caller"""
    filters = WorkshopFilters(
        status=status, category=category, creator_id=creator_id, search=search, page=page, limit=limit
    )
    await store.get_workshops(filters)
    return WorkshopListView(
        workshops=[_view(store, w) for w in store.workshops],
        has_more=store.has_more,
        error=store.error,
    )


@router.post("", response_model=ActionResult, status_code=201)
async def create_workshop(
    workshop_data: WorkshopFormData,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    workshop = await store.create_workshop(workshop_data)
    return _result(response, workshop is not None, store.error, workshop)


@router.get("/dashboard", response_model=DashboardView)
async def get_dashboard(
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    """The caller's enrolled, upcoming and completed workshops with certificates and stats"""
    if not store.workshops:
        await store.get_workshops()
    return DashboardView(
        enrolled_workshops=store.enrolled_workshops,
        upcoming_workshops=store.upcoming_workshops,
        completed_workshops=store.completed_workshops,
        certificates=store.user_certificates,
        stats=store.user_stats,
    )


@router.get("/created", response_model=List[Workshop])
async def list_created_workshops(
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    await store.get_user_created_workshops()
    if store.error:
        raise HTTPException(status_code=502, detail=store.error)
    return store.user_created_workshops


@router.get("/enrollments", response_model=List[WorkshopEnrollment])
async def list_my_enrollments(
    status: Optional[EnrollmentStatus] = None,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    await store.get_user_enrollments(status)
    return store.user_enrollments


@router.get("/certificates", response_model=List[WorkshopCertificate])
async def list_my_certificates(
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    await store.get_user_certificates()
    return store.user_certificates


@router.get("/stats", response_model=UserWorkshopStats)
async def get_my_stats(
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    stats = await store.get_user_workshop_stats()
    if stats is None:
        raise HTTPException(status_code=502, detail="Failed to fetch user workshop stats")
    return stats


@router.get("/certificates/verify/{verification_code}", response_model=CertificateVerification)
async def verify_certificate(verification_code: str, store: WorkshopStore = Depends(get_workshop_store)):
    """Public verification; always 200 with an outcome"""
    return await store.verify_certificate(verification_code)


@router.get("/certificates/{certificate_id}/url", response_model=CertificateUrl)
async def get_certificate_url(certificate_id: str, store: WorkshopStore = Depends(get_workshop_store)):
    url = await store.download_certificate(certificate_id)
    if url is None:
        raise HTTPException(status_code=404, detail="Certificate not available")
    return CertificateUrl(url=url)


@router.get("/certificates/{certificate_id}/download")
async def download_certificate(certificate_id: str, api: WorkshopApiService = Depends(get_workshop_api)):
    content = await api.download_certificate(certificate_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="certificate-{certificate_id}.pdf"'},
    )


@router.post("/certificates/{certificate_id}/share", response_model=ShareLink)
async def share_certificate(
    certificate_id: str,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    link = await store.share_certificate(certificate_id)
    if link is None:
        raise HTTPException(status_code=502, detail=store.error or "Failed to generate shareable link")
    return link


@router.post("/creators/approve", status_code=204)
async def approve_workshop_creator(
    request: UserActionRequest,
    identity: Identity = Depends(require_identity),
    api: WorkshopApiService = Depends(get_workshop_api),
):
    await api.approve_workshop_creator(request.user_id)
    logger.info(f"User {identity.uid} approved workshop creator {request.user_id}")
    return Response(status_code=204)


@router.get("/{workshop_id}", response_model=WorkshopView)
async def get_workshop(workshop_id: str, store: WorkshopStore = Depends(get_workshop_store)):
    workshop = await store.get_workshop(workshop_id)
    if workshop is None:
        raise HTTPException(status_code=404, detail=store.error or "Workshop not found")
    return _view(store, workshop)


@router.put("/{workshop_id}", response_model=ActionResult)
async def update_workshop(
    workshop_id: str,
    request: WorkshopUpdateRequest,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    workshop = await store.update_workshop(workshop_id, request.updates, request.changes)
    return _result(response, workshop is not None, store.error, workshop)


@router.post("/{workshop_id}/edit", response_model=ActionResult)
async def edit_workshop(
    workshop_id: str,
    request: WorkshopEditRequest,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    """Apply raw edit-form values: validate, diff against the current copy, send only changed fields"""
    original = await store.get_workshop(workshop_id)
    if original is None:
        raise HTTPException(status_code=404, detail=store.error or "Workshop not found")

    problem = validate_edit(original, process_edit(original, request.values), store.clock())
    if problem:
        raise HTTPException(status_code=422, detail=problem)

    updates, changes = diff_workshop_updates(original, request.values, request.touched)
    if not updates:
        raise HTTPException(status_code=400, detail="No changes detected")

    workshop = await store.update_workshop(workshop_id, updates, changes)
    return _result(response, workshop is not None, store.error, workshop)


@router.post("/{workshop_id}/publish", response_model=ActionResult)
async def publish_workshop(
    workshop_id: str,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    workshop = await store.publish_workshop(workshop_id)
    return _result(response, workshop is not None, store.error, workshop)


@router.delete("/{workshop_id}", response_model=ActionResult)
async def delete_workshop(
    workshop_id: str,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    ok = await store.delete_workshop(workshop_id)
    return _result(response, ok, store.error)


@router.post("/{workshop_id}/cancel", response_model=ActionResult)
async def cancel_workshop(
    workshop_id: str,
    response: Response,
    request: Optional[CancelWorkshopRequest] = None,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    ok = await store.cancel_workshop(workshop_id, request.reason if request else None)
    return _result(response, ok, store.error)


@router.post("/{workshop_id}/enroll", response_model=ActionResult)
async def enroll(
    workshop_id: str,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    ok = await store.enroll_in_workshop(workshop_id)
    return _result(response, ok, store.enrollment_error)


@router.delete("/{workshop_id}/enroll", response_model=ActionResult)
async def unenroll(
    workshop_id: str,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    ok = await store.unenroll_from_workshop(workshop_id)
    return _result(response, ok, store.enrollment_error)


@router.get("/{workshop_id}/enrollment-status", response_model=EnrollmentStatusResult)
async def get_enrollment_status(
    workshop_id: str,
    identity: Optional[Identity] = Depends(get_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    return await store.get_enrollment_status(workshop_id)


@router.get("/{workshop_id}/enrollments", response_model=List[WorkshopEnrollment])
async def list_workshop_enrollments(
    workshop_id: str,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    return await store.get_workshop_enrollments(workshop_id)


@router.get("/{workshop_id}/participants", response_model=List[Dict[str, Any]])
async def list_participants(
    workshop_id: str,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    participants = await store.get_workshop_participants(workshop_id)
    if store.error:
        raise HTTPException(status_code=502, detail=store.error)
    return participants


@router.post("/{workshop_id}/complete", response_model=ActionResult)
async def mark_workshop_completed(
    workshop_id: str,
    request: UserActionRequest,
    response: Response,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    ok = await store.mark_workshop_completed(workshop_id, request.user_id)
    return _result(response, ok, store.error)


@router.post("/{workshop_id}/certificate", response_model=WorkshopCertificate, status_code=201)
async def issue_certificate(
    workshop_id: str,
    request: UserActionRequest,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    certificate = await store.issue_certificate(workshop_id, request.user_id)
    if certificate is None:
        raise HTTPException(status_code=400, detail=store.error or "Failed to issue certificate")
    return certificate


@router.get("/{workshop_id}/stats", response_model=WorkshopStats)
async def get_workshop_stats(
    workshop_id: str,
    identity: Identity = Depends(require_identity),
    store: WorkshopStore = Depends(get_workshop_store),
):
    stats = await store.get_workshop_stats(workshop_id)
    if stats is None:
        raise HTTPException(status_code=502, detail="Failed to fetch workshop stats")
    return stats


@router.post("/{workshop_id}/notify/starting")
async def notify_workshop_starting(
    workshop_id: str,
    identity: Identity = Depends(require_identity),
    api: WorkshopApiService = Depends(get_workshop_api),
):
    notified = await api.notify_workshop_starting(workshop_id)
    return {"notified": notified}


@router.post("/{workshop_id}/notify/reminder")
async def notify_workshop_reminder(
    workshop_id: str,
    reminder_type: WorkshopNotificationType = Query(WorkshopNotificationType.REMINDER_24H, alias="type"),
    identity: Identity = Depends(require_identity),
    api: WorkshopApiService = Depends(get_workshop_api),
):
    if reminder_type not in (WorkshopNotificationType.REMINDER_24H, WorkshopNotificationType.REMINDER_1H):
        raise HTTPException(status_code=422, detail="Reminder type must be workshop_reminder_24h or workshop_reminder_1h")
    notified = await api.notify_workshop_reminder(workshop_id, reminder_type)
    return {"notified": notified}
