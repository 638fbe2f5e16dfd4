"""Thread-safe registry of user id -> UserSession (the per-user stores behind the web surface).

Sessions idle for longer than ``settings.session_idle_timeout`` are closed by
the sweep loop started with the application, which also stops their pollers.
"""
import asyncio
import threading
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from app.config import settings
from app.modules.auth.schemas import Identity
from app.modules.notifications.poller import NotificationPoller
from app.modules.notifications.store import WorkshopNotificationStore
from app.modules.workshops.store import WorkshopStore

logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    workshops: WorkshopStore
    notifications: WorkshopNotificationStore
    poller: Optional[NotificationPoller] = field(default=None)
    last_seen: float = field(default_factory=time.monotonic)

    async def close(self) -> None:
        if self.poller is not None:
            await self.poller.stop()
        await self.workshops.close()


_lock = threading.Lock()
_registry: dict[str, UserSession] = {}


def get_or_create(identity: Identity, factory: Callable[[Identity], UserSession]) -> UserSession:
    """Return the session for identity.uid, creating it with factory on first use."""
    with _lock:
        session = _registry.get(identity.uid)
        if session is None or session.workshops.closed:
            session = factory(identity)
            _registry[identity.uid] = session
            logger.debug(f"Registered session for user {identity.uid}")
        elif session.workshops.identity != identity:
            # Profile fields may change between requests; the uid does not
            session.workshops.identity = identity
        session.last_seen = time.monotonic()
        return session


def unregister(user_id: str, idle_since: Optional[float] = None) -> Optional[UserSession]:
    """Forget the session for user_id. With idle_since, only if it was not used after that instant."""
    with _lock:
        session = _registry.get(user_id)
        if session is None or (idle_since is not None and session.last_seen > idle_since):
            return None
        del _registry[user_id]
    logger.debug(f"Unregistered session for user {user_id}")
    return session


async def close_session(user_id: str, idle_since: Optional[float] = None) -> bool:
    """Close and forget the session for user_id. Returns True if one was closed."""
    session = unregister(user_id, idle_since)
    if session is None:
        return False
    await session.close()
    return True


async def evict_idle(max_idle: float, now: Optional[float] = None) -> int:
    """Close every session unused for more than max_idle seconds. Returns how many were closed."""
    cutoff = (time.monotonic() if now is None else now) - max_idle
    with _lock:
        candidates = [uid for uid, session in _registry.items() if session.last_seen <= cutoff]

    evicted = 0
    for user_id in candidates:
        try:
            if await close_session(user_id, idle_since=cutoff):
                evicted += 1
        except Exception as e:
            logger.warning(f"Error closing idle session for {user_id}: {e}")
    if evicted:
        logger.info(f"Evicted {evicted} idle user session(s)")
    return evicted


async def session_sweep_loop(interval: Optional[float] = None, max_idle: Optional[float] = None):
    """Evict idle sessions every interval seconds until cancelled"""
    interval = settings.session_sweep_interval if interval is None else interval
    max_idle = settings.session_idle_timeout if max_idle is None else max_idle
    while True:
        await asyncio.sleep(interval)
        try:
            await evict_idle(max_idle)
        except Exception as e:
            logger.error(f"Error in session sweep loop: {str(e)}")


async def close_all() -> None:
    with _lock:
        sessions: List[UserSession] = list(_registry.values())
        _registry.clear()
    for session in sessions:
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error closing session for {session.workshops.uid}: {e}")
    logger.info(f"Closed {len(sessions)} user session(s)")
