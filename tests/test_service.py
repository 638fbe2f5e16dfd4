"""Remote access layer against a fake backend."""

import httpx
import pytest

from app.core.exceptions import ApiRequestError, CertificateError, EnrollmentError, NotAuthenticatedError
from app.modules.notifications.models import WorkshopNotificationType
from app.modules.workshops.models import VerificationOutcome, WorkshopCategory, WorkshopStatus
from app.modules.workshops.schemas import WorkshopFilters
from app.modules.workshops.service import WorkshopApiService, build_query_params

NOTIFICATIONS = "/api/notifications"


def test_query_params_skip_status_uid_and_nulls():
    filters = WorkshopFilters(status=WorkshopStatus.PUBLISHED, category=WorkshopCategory.PROGRAMMING, search="pandas", page=2)

    assert build_query_params(filters) == {"category": "programming", "search": "pandas", "page": "2"}
    assert build_query_params({"uid": "u", "status": "draft", "creatorId": "c1", "limit": None}) == {"creatorId": "c1"}
    assert build_query_params(None) == {}


@pytest.mark.asyncio
async def test_get_workshops_requires_uid(api):
    with pytest.raises(NotAuthenticatedError, match="User ID is required"):
        await api.get_workshops(WorkshopFilters())


@pytest.mark.asyncio
async def test_get_workshops_normalizes_and_paginates(api, backend, raw_workshop):
    backend.add(
        "GET",
        "/api/workshops/user-1/available",
        json={
            "workshops": [raw_workshop(enrolledCount=11)],
            "pagination": {"currentPage": 2, "totalPages": 3, "hasMore": True},
            "filters": {"categories": [{"value": "programming", "count": 4}]},
        },
    )

    result = await api.get_workshops(WorkshopFilters(status=WorkshopStatus.PUBLISHED, page=2), uid="user-1")

    [request] = backend.calls("GET", "/api/workshops/user-1/available")
    assert dict(request.url.params) == {"page": "2"}
    assert result.workshops[0].current_enrollments == 11
    assert result.pagination.has_more is True
    assert result.filters.categories[0].count == 4


@pytest.mark.asyncio
async def test_detail_shape_is_unwrapped(api, backend, raw_workshop):
    backend.add("GET", "/api/workshops/workshop/w1", json={"workshop": raw_workshop(enrolledCount=9, format=None)})

    workshop = await api.get_workshop_by_id("w1")

    assert workshop.id == "w1"
    assert workshop.current_enrollments == 9
    assert workshop.format.value == "online"


@pytest.mark.asyncio
async def test_http_failure_carries_status_text(api, backend):
    backend.add("GET", "/api/workshops/w1", status=500, json={"error": "boom"})

    with pytest.raises(ApiRequestError) as excinfo:
        await api.get_workshop("w1")

    assert str(excinfo.value) == "Failed to fetch workshop: Internal Server Error"
    assert excinfo.value.status_code == 500
    assert excinfo.value.detail == {"error": "boom"}


@pytest.mark.asyncio
async def test_transport_failure_becomes_api_error(raw_workshop):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    api = WorkshopApiService(client, base_url="http://backend.test/api/workshops")

    with pytest.raises(ApiRequestError) as excinfo:
        await api.get_workshop("w1")

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_enroll_conflict(api, backend):
    backend.add("POST", "/api/workshops/w1/user-1/enroll", status=409, json={"error": "exists"})

    with pytest.raises(EnrollmentError, match="Already enrolled in this workshop"):
        await api.enroll_in_workshop("w1", "user-1")


@pytest.mark.asyncio
async def test_enroll_sends_confirmation(api, backend, raw_workshop):
    backend.add("POST", "/api/workshops/w1/user-1/enroll", json={"success": True, "workshop": raw_workshop()})
    backend.add("POST", NOTIFICATIONS, status=201, json={"id": "n1"})

    result = await api.enroll_in_workshop("w1", "user-1")

    assert result["success"] is True
    assert backend.bodies("POST", "/api/workshops/w1/user-1/enroll") == [{"userId": "user-1"}]
    [payload] = backend.bodies("POST", NOTIFICATIONS)
    assert payload["userId"] == "user-1"
    assert payload["type"] == "workshop"
    assert payload["subType"] == "workshop_enrollment_confirmation"
    assert payload["fromUserName"] == "Grace"
    assert payload["priority"] == "medium"
    assert payload["actionUrl"] == "/workshops/w1"
    assert payload["message"] == 'enrolled you in "Intro to Pandas" scheduled for January 15, 2024 at 2:00 PM.'


@pytest.mark.asyncio
async def test_enroll_survives_notification_failure(api, backend, raw_workshop):
    backend.add("POST", "/api/workshops/w1/user-1/enroll", json={"success": True, "workshop": raw_workshop()})
    backend.add("POST", NOTIFICATIONS, status=500, json={"error": "down"})

    result = await api.enroll_in_workshop("w1", "user-1")

    assert result["success"] is True
    assert len(backend.calls("POST", NOTIFICATIONS)) == 1


@pytest.mark.asyncio
async def test_enrollment_status_not_found_is_a_result(api, backend):
    backend.add("GET", "/api/workshops/w2/enrollment/user-1", status=404)
    backend.add("GET", "/api/workshops/w1/enrollment/user-1", json={"status": "waitlisted"})

    missing = await api.get_enrollment_status("w2", "user-1")
    found = await api.get_enrollment_status("w1", "user-1")

    assert missing.enrolled is False and missing.status is None
    assert found.enrolled is True and found.status.value == "waitlisted"


@pytest.mark.asyncio
async def test_user_enrollments_filtered_client_side(api, backend):
    backend.add(
        "GET",
        "/api/workshops/user-1/enrollments",
        json=[
            {"id": "e1", "workshopId": "w1", "userId": "user-1", "status": "enrolled"},
            {"id": "e2", "workshopId": "w2", "userId": "user-1", "status": "completed"},
        ],
    )

    completed = await api.get_user_enrollments("user-1", status="completed")

    assert [e.id for e in completed] == ["e2"]
    [request] = backend.calls("GET", "/api/workshops/user-1/enrollments")
    assert not request.url.params


@pytest.mark.asyncio
async def test_verify_certificate_expired(api, backend, raw_certificate):
    backend.add(
        "GET",
        "/api/workshops/certificates/verify/ABC123",
        json=raw_certificate(validUntil="2024-01-09T12:00:00.000Z"),
    )

    result = await api.verify_certificate("ABC123")

    assert result.is_valid is False
    assert result.outcome == VerificationOutcome.EXPIRED
    assert result.error == "Certificate has expired"
    assert result.certificate is not None
    assert result.certificate.verification_code == "ABC123"


@pytest.mark.asyncio
async def test_verify_certificate_outcomes_are_distinct(api, backend, raw_certificate):
    backend.add("GET", "/api/workshops/certificates/verify/GOOD", json=raw_certificate())
    backend.add("GET", "/api/workshops/certificates/verify/DRAFT", json=raw_certificate(isVerified=False))
    backend.add("GET", "/api/workshops/certificates/verify/NOPE", status=404)
    backend.add("GET", "/api/workshops/certificates/verify/EXPIRED", json=raw_certificate(validUntil="2023-12-31"))

    good = await api.verify_certificate("GOOD")
    unverified = await api.verify_certificate("DRAFT")
    missing = await api.verify_certificate("NOPE")
    expired = await api.verify_certificate("EXPIRED")

    assert good.is_valid is True and good.outcome == VerificationOutcome.VALID and good.error is None
    assert unverified.outcome == VerificationOutcome.UNVERIFIED
    assert unverified.error == "Certificate is not verified"
    assert missing.outcome == VerificationOutcome.NOT_FOUND
    assert missing.error == "Certificate not found or verification code is invalid"
    assert missing.certificate is None
    assert len({unverified.error, missing.error, expired.error}) == 3
    assert not any(r.is_valid for r in (unverified, missing, expired))


@pytest.mark.asyncio
async def test_verify_certificate_backend_failure(api, backend):
    backend.add("GET", "/api/workshops/certificates/verify/ABC123", status=503)

    result = await api.verify_certificate("ABC123")

    assert result.outcome == VerificationOutcome.UNAVAILABLE
    assert result.error == "Failed to verify certificate. Please try again later."


@pytest.mark.asyncio
async def test_certificate_by_code_raises_when_missing(api, backend):
    with pytest.raises(CertificateError, match="Certificate not found"):
        await api.get_certificate_by_verification_code("NOPE")


@pytest.mark.asyncio
async def test_download_and_share_certificate(api, backend):
    backend.add("GET", "/api/workshops/certificates/c1/download", content=b"%PDF-1.7 fake")
    backend.add("POST", "/api/workshops/certificates/c1/share", json={"shareableUrl": "https://share.test/c1"})

    assert await api.download_certificate("c1") == b"%PDF-1.7 fake"
    assert (await api.share_certificate("c1")).shareable_url == "https://share.test/c1"


@pytest.mark.asyncio
async def test_cancel_notifies_enrolled_participants_only(api, backend, raw_workshop):
    backend.add("POST", "/api/workshops/w1/cancel", json={"success": True})
    backend.add("GET", "/api/workshops/w1", json=raw_workshop())
    backend.add(
        "GET",
        "/api/workshops/w1/enrollments",
        json=[
            {"workshopId": "w1", "userId": "u1", "status": "enrolled"},
            {"workshopId": "w1", "userId": "u2", "status": "enrolled"},
            {"workshopId": "w1", "userId": "u3", "status": "waitlisted"},
        ],
    )
    backend.add("POST", NOTIFICATIONS, status=201, json={})

    await api.cancel_workshop("w1", reason="Speaker is ill")

    assert backend.bodies("POST", "/api/workshops/w1/cancel") == [{"reason": "Speaker is ill"}]
    payloads = backend.bodies("POST", NOTIFICATIONS)
    assert sorted(p["userId"] for p in payloads) == ["u1", "u2"]
    assert all(p["subType"] == "workshop_cancelled" for p in payloads)
    assert payloads[0]["message"] == 'cancelled the workshop "Intro to Pandas" - Speaker is ill.'
    assert payloads[0]["priority"] == "high"


@pytest.mark.asyncio
async def test_cancel_succeeds_when_fan_out_fails(api, backend):
    backend.add("POST", "/api/workshops/w1/cancel", json={"success": True})

    await api.cancel_workshop("w1")

    assert backend.calls("POST", NOTIFICATIONS) == []


@pytest.mark.asyncio
async def test_update_with_changes_fans_out(api, backend, raw_workshop):
    backend.add("PUT", "/api/workshops/w1/user-1", json=raw_workshop(title="Pandas 2"))
    backend.add("GET", "/api/workshops/w1", json=raw_workshop(title="Pandas 2"))
    backend.add("GET", "/api/workshops/w1/enrollments", json=[{"workshopId": "w1", "userId": "u1", "status": "enrolled"}])
    backend.add("POST", NOTIFICATIONS, status=201, json={})

    workshop = await api.update_workshop("w1", {"title": "Pandas 2"}, changes=["title"], uid="user-1")

    assert workshop.title == "Pandas 2"
    [payload] = backend.bodies("POST", NOTIFICATIONS)
    assert payload["message"] == 'updated the workshop "Pandas 2" - Changes: title.'
    assert payload["actionLabel"] == "View Changes"


@pytest.mark.asyncio
async def test_update_without_uid_uses_short_path(api, backend, raw_workshop):
    backend.add("PUT", "/api/workshops/w1", json=raw_workshop())

    await api.update_workshop("w1", {"description": "x"})

    assert len(backend.calls("PUT", "/api/workshops/w1")) == 1
    assert backend.calls("POST", NOTIFICATIONS) == []


@pytest.mark.asyncio
async def test_pending_creation_notifies_creator(api, backend, raw_workshop):
    backend.add("POST", "/api/workshops/creator-1", json=raw_workshop(status="pending"))
    backend.add("POST", NOTIFICATIONS, status=201, json={})

    workshop = await api.create_workshop({"title": "Intro to Pandas"}, "creator-1")

    assert workshop.status == WorkshopStatus.PENDING
    [payload] = backend.bodies("POST", NOTIFICATIONS)
    assert payload["userId"] == "creator-1"
    assert payload["subType"] == "workshop_creator_approved"


@pytest.mark.asyncio
async def test_issue_certificate_notification_is_best_effort(api, backend, raw_certificate):
    backend.add("POST", "/api/workshops/w1/certificate", json=raw_certificate())

    certificate = await api.issue_certificate("w1", "user-1")

    assert certificate.id == "c1"
    assert backend.calls("POST", NOTIFICATIONS) == []


@pytest.mark.asyncio
async def test_issue_certificate_notifies_holder(api, backend, raw_certificate):
    backend.add("POST", "/api/workshops/w1/certificate", json=raw_certificate())
    backend.add("GET", "/api/workshops/certificates/c1", json=raw_certificate())
    backend.add("POST", NOTIFICATIONS, status=201, json={})

    await api.issue_certificate("w1", "user-1")

    [payload] = backend.bodies("POST", NOTIFICATIONS)
    assert payload["subType"] == "certificate_issued"
    assert payload["fromUserId"] == "system"
    assert payload["actionUrl"] == "/certificates/c1"
    assert payload["actionLabel"] == "Download Certificate"


@pytest.mark.asyncio
async def test_mark_completed_notifies_with_certificate(api, backend, raw_workshop):
    backend.add("POST", "/api/workshops/w1/complete", json={"workshop": raw_workshop(), "certificateId": "c9"})
    backend.add("POST", NOTIFICATIONS, status=201, json={})

    result = await api.mark_workshop_completed("w1", "user-1")

    assert result.certificate_id == "c9"
    [payload] = backend.bodies("POST", NOTIFICATIONS)
    assert payload["certificateId"] == "c9"
    assert payload["message"].endswith("Your certificate is ready!")


@pytest.mark.asyncio
async def test_reminder_type_is_checked(api):
    with pytest.raises(ValueError):
        await api.notify_workshop_reminder("w1", WorkshopNotificationType.CANCELLED)


@pytest.mark.asyncio
async def test_stats_are_defaulted(api, backend):
    backend.add("GET", "/api/workshops/w1/stats", json={"totalEnrollments": 4})
    backend.add("GET", "/api/workshops/user-1/stats", json={"certificatesEarned": 2, "skillsAcquired": None})

    stats = await api.get_workshop_stats("w1")
    user_stats = await api.get_user_workshop_stats("user-1")

    assert stats.total_enrollments == 4 and stats.completion_rate == 0
    assert user_stats.certificates_earned == 2 and user_stats.skills_acquired == []
