"""
NetShield - Notification Bus
Async queue-based dispatcher with severity gating, rate limiting and retry.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Deque, List, Optional

from netshield.config import settings
from netshield.detectors.severity import parse_severity, severity_meets_threshold
from netshield.notifications.types import Notification
from netshield.notifications.webhook import WebhookNotifier

logger = logging.getLogger(__name__)

RECENT_HISTORY = 50


class NotificationBus:
    """
    Async notification bus with:
    - Queue-based non-blocking dispatch
    - Severity gating (NOTIFY_MIN_SEVERITY)
    - Rate limiting (sliding one-minute window)
    - Retry with exponential backoff
    - Soft-fail (never crashes on delivery errors)

    Every accepted notification is logged and kept in a short history;
    delivery only happens when a webhook is configured.
    """

    def __init__(
        self,
        notifier: Optional[WebhookNotifier] = None,
        min_severity: Optional[str] = None,
        rate_limit_per_min: Optional[int] = None,
        retry_delays: Optional[List[float]] = None,
    ):
        self._queue: "asyncio.Queue[Optional[Notification]]" = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None
        self._running: bool = False
        self._notifier = notifier
        self._min_severity = parse_severity(min_severity or settings.notify_min_severity)

        # Rate limiting: timestamps of delivered messages (sliding window)
        self._send_timestamps: Deque[float] = deque()
        self._rate_limit: int = rate_limit_per_min or settings.notify_rate_limit_per_min

        self._retry_delays = retry_delays if retry_delays is not None else [0.5, 1.0, 2.0]
        self._recent: Deque[Notification] = deque(maxlen=RECENT_HISTORY)

    @property
    def running(self) -> bool:
        return self._running

    def recent(self) -> List[Notification]:
        """Most recent accepted notifications first."""
        return list(reversed(self._recent))

    def start(self) -> None:
        """Start the notification worker (must be called from a running loop)."""
        if self._running:
            return

        if self._notifier is None and settings.notify_webhook_url:
            self._notifier = WebhookNotifier()
        if self._notifier is None:
            logger.info("Webhook notifications disabled (NOTIFY_WEBHOOK_URL not set), logging only")

        self._running = True
        self._worker_task = asyncio.create_task(self._worker())
        logger.info("NotificationBus started")

    async def stop(self) -> None:
        """Stop the notification worker gracefully."""
        if not self._running:
            return

        self._running = False

        if self._worker_task:
            # None signals the worker to stop
            await self._queue.put(None)
            try:
                await asyncio.wait_for(self._worker_task, timeout=5.0)
            except asyncio.TimeoutError:
                self._worker_task.cancel()
            self._worker_task = None

        if self._notifier:
            await self._notifier.close()

        logger.info("NotificationBus stopped")

    def enqueue(self, notification: Notification) -> None:
        """
        Enqueue a notification for async processing.
        Never blocks or raises.
        """
        if not self._running:
            return

        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            logger.warning("Notification queue full, notification dropped")

    async def _worker(self) -> None:
        """Background worker that drains the queue up to the stop sentinel."""
        logger.debug("NotificationBus worker started")

        while True:
            try:
                notification = await self._queue.get()
                if notification is None:
                    break
                await self.process(notification)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"NotificationBus worker error: {e}")

        logger.debug("NotificationBus worker stopped")

    async def process(self, notification: Notification) -> bool:
        """
        Gate, record and deliver one notification.
        Returns True when it was delivered to the webhook.
        """
        try:
            severity = parse_severity(notification.get("severity", "Low"))
        except ValueError:
            logger.warning(f"Notification with unknown severity dropped: {notification.get('severity')!r}")
            return False

        if not severity_meets_threshold(severity, self._min_severity):
            logger.debug(f"Notification skipped (severity {severity.value} < {self._min_severity.value})")
            return False

        self._recent.append(notification)
        logger.warning(f"[{notification.get('kind')}] {notification.get('title')}: {notification.get('message')}")

        if self._notifier is None:
            return False

        now = time.time()
        self._cleanup_rate_window(now)
        if len(self._send_timestamps) >= self._rate_limit:
            logger.warning(f"Notification not delivered (rate limit {self._rate_limit}/min exceeded)")
            return False

        delivered = await self._send_with_retry(notification)
        if delivered:
            self._send_timestamps.append(now)
        return delivered

    async def _send_with_retry(self, notification: Notification) -> bool:
        """Send with exponential backoff retry."""
        attempts = len(self._retry_delays) + 1
        for attempt, delay in enumerate(self._retry_delays + [None], start=1):
            try:
                await self._notifier.send(notification)
                logger.info(f"Webhook notification sent: {notification.get('kind')} ({notification.get('severity')})")
                return True

            except Exception as e:
                if delay is not None:
                    logger.warning(f"Webhook send failed (attempt {attempt}/{attempts}): {e}, retrying in {delay}s")
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Webhook send failed after {attempts} attempts: {e}")

        return False

    def _cleanup_rate_window(self, now: float) -> None:
        """Remove timestamps older than 60 seconds."""
        cutoff = now - 60
        while self._send_timestamps and self._send_timestamps[0] < cutoff:
            self._send_timestamps.popleft()
