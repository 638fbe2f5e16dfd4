import asyncio
import logging
from typing import Optional

from app.config import settings
from app.modules.notifications.store import WorkshopNotificationStore

logger = logging.getLogger(__name__)


async def notification_poll_loop(store: WorkshopNotificationStore, interval: Optional[float] = None):
    """Re-fetch the store's notifications until cancelled"""
    interval = settings.notification_poll_interval if interval is None else interval
    while True:
        try:
            await store.fetch_notifications()
        except Exception as e:
            logger.error(f"Error in notification poll loop: {str(e)}")

        await asyncio.sleep(interval)


class NotificationPoller:
    """Owns the background poll task for one notification store."""

    def __init__(self, store: WorkshopNotificationStore, interval: Optional[float] = None):
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(notification_poll_loop(self.store, self.interval))
        logger.debug(f"Started notification polling for user {self.store.user_id}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug(f"Stopped notification polling for user {self.store.user_id}")
