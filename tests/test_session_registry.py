"""Per-user session registry: reuse, idle eviction and teardown of pollers."""

import asyncio
import time

import pytest

from app.core import session_registry
from app.core.session_registry import UserSession
from app.modules.auth.schemas import Identity
from app.modules.notifications.poller import NotificationPoller
from app.modules.notifications.store import WorkshopNotificationStore
from app.modules.workshops.store import WorkshopStore


@pytest.fixture(autouse=True)
def empty_registry():
    session_registry._registry.clear()
    yield
    session_registry._registry.clear()


@pytest.fixture
def factory(api, notification_api, clock):
    def build(identity: Identity) -> UserSession:
        return UserSession(
            workshops=WorkshopStore(api, identity, clock=clock),
            notifications=WorkshopNotificationStore(notification_api, identity.uid),
        )
    return build


def test_session_is_reused_and_identity_refreshed(factory, identity):
    first = session_registry.get_or_create(identity, factory)
    renamed = identity.model_copy(update={"name": "Ada L."})

    second = session_registry.get_or_create(renamed, factory)

    assert second is first
    assert second.workshops.identity.name == "Ada L."


@pytest.mark.asyncio
async def test_idle_session_is_closed_and_its_poller_stopped(backend, factory, identity):
    backend.add("GET", "/api/notifications/workshop/user-1", json=[])
    session = session_registry.get_or_create(identity, factory)
    session.poller = NotificationPoller(session.notifications, interval=0.01)
    session.poller.start()
    await asyncio.sleep(0.02)

    evicted = await session_registry.evict_idle(60, now=time.monotonic() + 3600)

    assert evicted == 1
    assert session.poller.running is False
    assert session.workshops.closed is True
    assert "user-1" not in session_registry._registry

    polls = len(backend.calls("GET", "/api/notifications/workshop/user-1"))
    await asyncio.sleep(0.03)
    assert len(backend.calls("GET", "/api/notifications/workshop/user-1")) == polls


@pytest.mark.asyncio
async def test_active_session_survives_sweep(factory, identity):
    session = session_registry.get_or_create(identity, factory)

    assert await session_registry.evict_idle(60) == 0
    assert session_registry._registry["user-1"] is session
    assert session.workshops.closed is False


@pytest.mark.asyncio
async def test_session_used_after_cutoff_is_kept(factory, identity):
    session = session_registry.get_or_create(identity, factory)
    cutoff = session.last_seen - 1

    assert await session_registry.close_session("user-1", idle_since=cutoff) is False
    assert await session_registry.close_session("user-1") is True
    assert session.workshops.closed is True


@pytest.mark.asyncio
async def test_evicted_user_gets_a_fresh_session(factory, identity):
    old = session_registry.get_or_create(identity, factory)
    await session_registry.evict_idle(0, now=time.monotonic() + 1)

    new = session_registry.get_or_create(identity, factory)

    assert new is not old
    assert new.workshops.closed is False
