"""
NetShield - Alert Notifier
Turns successive alert windows into de-duplicated notifications.

State is owned by a single notifier instance. Separate instances (another
worker, another process) keep their own state and may notify the same alert
again; nothing is coordinated across them.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from netshield.detectors.severity import Severity
from netshield.notifications.types import Notification, CRITICAL_ALERT, HIGH_VOLUME
from netshield.schemas import Alert

logger = logging.getLogger(__name__)


class AlertNotifier:
    """
    De-duplicating notification trigger with:
    - one notification per new Critical alert id
    - bounded LRU of seen ids (alert ids are never reused)
    - rolling-window volume warning, at most one per window period

    The same window may be passed in repeatedly (e.g. after every change
    notification); only ids not seen before count as new. Capacity should
    comfortably exceed the size of the windows passed in.
    """

    def __init__(self, volume_threshold: int = 10, window_seconds: int = 60, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.volume_threshold = volume_threshold
        self.window = timedelta(seconds=window_seconds)
        self.capacity = capacity

        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._arrivals: List[datetime] = []
        self._last_volume_warning: Optional[datetime] = None

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    @property
    def last_volume_warning(self) -> Optional[datetime]:
        return self._last_volume_warning

    def prime(self, alerts: Sequence[Alert]) -> int:
        """
        Mark alerts as already seen without emitting anything.
        Used at startup so alerts stored before this process began are not replayed.

        Returns:
            Number of ids newly recorded
        """
        primed = sum(1 for a in alerts if self._remember(a.id))
        if primed:
            logger.info(f"AlertNotifier primed with {primed} existing alert id(s)")
        return primed

    def process(self, alerts: Sequence[Alert], now: Optional[datetime] = None) -> List[Notification]:
        """
        Feed a batch of alerts (any order) and return the notifications to emit.

        Args:
            alerts: Alert window or increment; already seen ids are ignored
            now: Evaluation time, defaults to the current UTC time

        Returns:
            Critical-alert notifications in input order, then at most one volume warning
        """
        now = now or datetime.now(timezone.utc)
        notifications: List[Notification] = []

        new_alerts = [a for a in alerts if self._remember(a.id)]
        for alert in new_alerts:
            if alert.severity == Severity.CRITICAL:
                notifications.append(self._critical_notification(alert))

        self._arrivals.extend(a.timestamp for a in new_alerts)
        cutoff = now - self.window
        self._arrivals = [ts for ts in self._arrivals if ts > cutoff]

        count = len(self._arrivals)
        if count >= self.volume_threshold and self._volume_warning_allowed(now):
            self._last_volume_warning = now
            notifications.append(self._volume_notification(count, now))

        if notifications:
            logger.debug(f"AlertNotifier emitted {len(notifications)} notification(s)")
        return notifications

    def _remember(self, alert_id: str) -> bool:
        """True when the id is new. Known ids are refreshed in the LRU."""
        if alert_id in self._seen:
            self._seen.move_to_end(alert_id)
            return False
        self._seen[alert_id] = None
        if len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return True

    def _volume_warning_allowed(self, now: datetime) -> bool:
        if self._last_volume_warning is None:
            return True
        return now - self._last_volume_warning > self.window

    def _critical_notification(self, alert: Alert) -> Notification:
        return {
            "kind": CRITICAL_ALERT,
            "severity": alert.severity.value,
            "title": "Critical Security Alert",
            "message": f"{alert.attack_type.value} detected from {alert.source_ip}",
            "timestamp": alert.timestamp.isoformat(),
            "alert_id": alert.id,
            "source_ip": alert.source_ip,
            "dest_ip": alert.dest_ip,
            "attack_type": alert.attack_type.value,
            "confidence_score": alert.confidence_score,
        }

    def _volume_notification(self, count: int, now: datetime) -> Notification:
        seconds = int(self.window.total_seconds())
        return {
            "kind": HIGH_VOLUME,
            "severity": Severity.HIGH.value,
            "title": "High Alert Volume",
            "message": f"{count} alerts in the last {seconds} seconds",
            "timestamp": now.isoformat(),
            "alert_count": count,
        }
