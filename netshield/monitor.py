"""
NetShield - Alert Monitor
Recomputes notification triggers whenever the alerts table changes.
"""

import asyncio
import logging
from typing import List, Optional, Set

from netshield.errors import StoreUnavailable
from netshield.notifications.bus import NotificationBus
from netshield.notifications.dedup import AlertNotifier
from netshield.notifications.types import Notification
from netshield.repository import recent_alerts
from netshield.store import ChangeEvent, DataStore, Subscription, TABLE_ALERTS

logger = logging.getLogger(__name__)


class AlertMonitor:
    """
    Subscribes to alert writes, refetches the recent window and feeds it to
    the notifier. A refresh that is overtaken by a newer one drops its result.
    """

    def __init__(
        self,
        store: DataStore,
        notifier: AlertNotifier,
        bus: Optional[NotificationBus] = None,
        window_limit: int = 100,
    ):
        if notifier.capacity < window_limit:
            # A smaller LRU would evict ids still in the window and re-notify them
            raise ValueError(
                f"notifier capacity ({notifier.capacity}) must be at least the window limit ({window_limit})"
            )
        self.store = store
        self.notifier = notifier
        self.bus = bus
        self.window_limit = window_limit

        self._subscription: Optional[Subscription] = None
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()

    async def prime(self) -> int:
        """
        Mark the alerts already in the store as seen, so only alerts written
        after startup trigger notifications.
        """
        try:
            alerts = await recent_alerts(self.store, limit=self.window_limit)
        except StoreUnavailable as e:
            logger.warning(f"AlertMonitor could not prime from store: {e}")
            return 0
        return self.notifier.prime(alerts)

    def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self.store.subscribe(TABLE_ALERTS, self._on_change)
        logger.info(f"AlertMonitor subscribed to {TABLE_ALERTS} (window={self.window_limit})")

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("AlertMonitor stopped")

    def _on_change(self, event: ChangeEvent) -> None:
        self._generation += 1
        task = asyncio.get_running_loop().create_task(self.refresh(self._generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def refresh(self, generation: Optional[int] = None) -> List[Notification]:
        """
        Fetch the recent window and emit notifications.

        Args:
            generation: Change counter at scheduling time; stale refreshes are discarded

        Returns:
            Notifications emitted by this refresh
        """
        try:
            alerts = await recent_alerts(self.store, limit=self.window_limit)
        except StoreUnavailable as e:
            logger.warning(f"AlertMonitor refresh skipped, store unavailable: {e}")
            return []

        if generation is not None and generation != self._generation:
            logger.debug(f"AlertMonitor refresh {generation} superseded by {self._generation}")
            return []

        notifications = self.notifier.process(alerts)
        if self.bus is not None:
            for notification in notifications:
                self.bus.enqueue(notification)
        return notifications
