"""
Core dependencies: forwarded identity, backend services and per-user stores
"""

from fastapi import Depends, Header, HTTPException, status
from app.config import settings
from app.core import session_registry
from app.core.http_client import get_http_client
from app.core.session_registry import UserSession
from app.modules.auth.schemas import Identity
from app.modules.notifications.poller import NotificationPoller
from app.modules.notifications.service import NotificationService, WorkshopNotificationApiService
from app.modules.notifications.store import WorkshopNotificationStore
from app.modules.workshops.service import WorkshopApiService
from app.modules.workshops.store import WorkshopStore
from typing import AsyncIterator, Optional
import httpx
import logging

logger = logging.getLogger(__name__)


def get_identity(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_avatar: Optional[str] = Header(None),
) -> Optional[Identity]:
    """Identity forwarded by the auth proxy in front of this service. None when anonymous."""
    if not x_user_id:
        return None
    return Identity(uid=x_user_id, name=x_user_name, email=x_user_email, photo_url=x_user_avatar)


def require_identity(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="You must be logged in",
        )
    return identity


def get_notification_service(client: httpx.AsyncClient = Depends(get_http_client)) -> NotificationService:
    return NotificationService(client)


def get_workshop_api(
    client: httpx.AsyncClient = Depends(get_http_client),
    notifier: NotificationService = Depends(get_notification_service),
) -> WorkshopApiService:
    return WorkshopApiService(client, notifier)


def get_notification_api(client: httpx.AsyncClient = Depends(get_http_client)) -> WorkshopNotificationApiService:
    return WorkshopNotificationApiService(client)


def build_session(identity: Identity, client: httpx.AsyncClient) -> UserSession:
    return UserSession(
        workshops=WorkshopStore(WorkshopApiService(client, NotificationService(client)), identity),
        notifications=WorkshopNotificationStore(WorkshopNotificationApiService(client), identity.uid),
    )


def get_user_session(
    identity: Identity = Depends(require_identity),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> UserSession:
    return session_registry.get_or_create(identity, lambda i: build_session(i, client))


async def get_workshop_store(
    identity: Optional[Identity] = Depends(get_identity),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> AsyncIterator[WorkshopStore]:
    """Registered store for known users; a throwaway store, closed after the request, otherwise."""
    if identity is None:
        store = WorkshopStore(WorkshopApiService(client, NotificationService(client)))
        try:
            yield store
        finally:
            await store.close()
        return

    session = session_registry.get_or_create(identity, lambda i: build_session(i, client))
    store = session.workshops
    if not store.user_data_loaded:
        await store.load_user_data()
    yield store


async def get_notification_store(session: UserSession = Depends(get_user_session)) -> WorkshopNotificationStore:
    if settings.notification_poll_interval > 0 and session.poller is None:
        session.poller = NotificationPoller(session.notifications)
        session.poller.start()
    return session.notifications
