"""
Test configuration and fixtures for the test suite
"""
import json
import pytest
import httpx
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from app.modules.auth.schemas import Identity
from app.modules.notifications.service import NotificationService, WorkshopNotificationApiService
from app.modules.workshops.normalization import normalize_workshop
from app.modules.workshops.schemas import Workshop
from app.modules.workshops.service import WorkshopApiService
from app.modules.workshops.store import WorkshopStore

API_URL = "http://backend.test"
WORKSHOPS_URL = f"{API_URL}/api/workshops"
NOTIFICATIONS_URL = f"{API_URL}/api/notifications"

# Five days before the default workshop starts
NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


class FakeBackend:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self):
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        content: Optional[bytes] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if handler is None:
            if content is not None:
                handler = lambda request: httpx.Response(status, content=content)
            else:
                handler = lambda request: httpx.Response(status, json=json)
        self.routes[(method, path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "Not found"})
        return handler(request)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def bodies(self, method: str, path: str) -> List[Any]:
        return [json.loads(r.content) for r in self.calls(method, path)]


def workshop_payload(**overrides) -> Dict[str, Any]:
    payload = {
        "id": "w1",
        "title": "Intro to Pandas",
        "description": "Hands-on data wrangling",
        "category": "programming",
        "creatorId": "creator-1",
        "creatorName": "Grace",
        "scheduledDate": "2024-01-15",
        "startTime": "14:00",
        "endTime": "16:00",
        "duration": 120,
        "timezone": "UTC",
        "maxParticipants": 20,
        "currentEnrollments": 5,
        "status": "published",
        "learningObjectives": ["Load CSV files"],
        "tags": ["data"],
    }
    payload.update(overrides)
    return payload


def certificate_payload(**overrides) -> Dict[str, Any]:
    payload = {
        "id": "c1",
        "workshopId": "w1",
        "workshopTitle": "Intro to Pandas",
        "userId": "user-1",
        "userName": "Ada",
        "certificateNumber": "CERT-0001",
        "verificationCode": "ABC123",
        "isVerified": True,
        "issuedAt": "2024-01-15T16:00:00.000Z",
        "validUntil": "2025-01-15T00:00:00.000Z",
        "pdfUrl": "https://files.test/c1.pdf",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def http_client(backend):
    return httpx.AsyncClient(transport=httpx.MockTransport(backend.handle))


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def notifier(http_client):
    return NotificationService(http_client, base_url=NOTIFICATIONS_URL)


@pytest.fixture
def api(http_client, notifier, clock):
    return WorkshopApiService(http_client, notifier, base_url=WORKSHOPS_URL, clock=clock)


@pytest.fixture
def notification_api(http_client):
    return WorkshopNotificationApiService(http_client, base_url=NOTIFICATIONS_URL)


@pytest.fixture
def identity():
    return Identity(uid="user-1", name="Ada", email="ada@example.com", photo_url="https://img.test/ada.png")


@pytest.fixture
def store(api, identity, clock):
    return WorkshopStore(api, identity, clock=clock)


@pytest.fixture
def make_workshop():
    def factory(**overrides) -> Workshop:
        return Workshop.model_validate(normalize_workshop(workshop_payload(**overrides), now=NOW))
    return factory


@pytest.fixture
def raw_workshop():
    return workshop_payload


@pytest.fixture
def raw_certificate():
    return certificate_payload


@pytest.fixture
def now():
    return NOW
