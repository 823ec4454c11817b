"""
Tests for notification de-duplication and the notification bus.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import BASE_TIME, make_alert
from netshield.detectors.severity import Severity
from netshield.notifications import CRITICAL_ALERT, HIGH_VOLUME, AlertNotifier, NotificationBus, WebhookNotifier


class TestAlertNotifier:
    """Tests for AlertNotifier.process()."""

    def setup_method(self):
        self.notifier = AlertNotifier(volume_threshold=10, window_seconds=60, capacity=1000)

    def test_critical_alert_notified_once(self):
        alert = make_alert("c-1", severity=Severity.CRITICAL)

        first = self.notifier.process([alert], now=BASE_TIME)
        second = self.notifier.process([alert], now=BASE_TIME + timedelta(seconds=1))

        assert [n["kind"] for n in first] == [CRITICAL_ALERT]
        assert first[0]["alert_id"] == "c-1"
        assert second == []

    def test_non_critical_alerts_not_notified(self):
        alerts = [
            make_alert("h-1", severity=Severity.HIGH),
            make_alert("m-1", severity=Severity.MEDIUM),
        ]
        assert self.notifier.process(alerts, now=BASE_TIME) == []

    def test_overlapping_windows_only_new_ids(self):
        a = make_alert("c-1", severity=Severity.CRITICAL, seconds_ago=2)
        b = make_alert("c-2", severity=Severity.CRITICAL, seconds_ago=1)

        self.notifier.process([a], now=BASE_TIME)
        out = self.notifier.process([b, a], now=BASE_TIME)

        assert [n["alert_id"] for n in out] == ["c-2"]

    def test_volume_warning_for_alerts_arriving_one_at_a_time(self):
        def feed(alert_id, offset):
            at = BASE_TIME + timedelta(seconds=offset)
            out = self.notifier.process([make_alert(alert_id, seconds_ago=0, now=at)], now=at)
            return [n for n in out if n["kind"] == HIGH_VOLUME]

        warned = [i for i in range(10) if feed(f"a-{i}", i)]
        assert warned == [9]

        # warning at +9s; a further alert inside the window stays quiet
        assert feed("a-10", 14) == []

        for i in range(9):
            assert feed(f"b-{i}", 56 + i) == []

        again = feed("b-9", 74)
        assert len(again) == 1
        assert again[0]["alert_count"] == 10

    def test_volume_warning_for_twelve_alerts(self):
        alerts = [
            make_alert(f"a-{i}", severity=Severity.HIGH, seconds_ago=i * 4)
            for i in range(12)
        ]

        out = self.notifier.process(alerts, now=BASE_TIME)

        volume = [n for n in out if n["kind"] == HIGH_VOLUME]
        assert len(volume) == 1
        assert volume[0]["alert_count"] == 12
        assert volume[0]["severity"] == "High"
        assert self.notifier.last_volume_warning == BASE_TIME

    def test_volume_warning_suppressed_within_window(self):
        batch1 = [make_alert(f"a-{i}", seconds_ago=1) for i in range(12)]
        batch2 = [make_alert(f"b-{i}", seconds_ago=0) for i in range(12)]

        self.notifier.process(batch1, now=BASE_TIME)
        out = self.notifier.process(batch2, now=BASE_TIME + timedelta(seconds=30))

        assert [n for n in out if n["kind"] == HIGH_VOLUME] == []

    def test_volume_warning_again_after_window(self):
        batch1 = [make_alert(f"a-{i}") for i in range(12)]
        later = BASE_TIME + timedelta(seconds=61)
        batch2 = [make_alert(f"b-{i}", now=later) for i in range(12)]

        self.notifier.process(batch1, now=BASE_TIME)
        out = self.notifier.process(batch2, now=later)

        volume = [n for n in out if n["kind"] == HIGH_VOLUME]
        assert len(volume) == 1
        assert volume[0]["alert_count"] == 12

    def test_below_volume_threshold(self):
        alerts = [make_alert(f"a-{i}") for i in range(9)]
        assert self.notifier.process(alerts, now=BASE_TIME) == []

    def test_old_alerts_do_not_count_toward_volume(self):
        alerts = [make_alert(f"a-{i}", seconds_ago=120) for i in range(15)]
        assert self.notifier.process(alerts, now=BASE_TIME) == []

    def test_seen_ids_bounded(self):
        notifier = AlertNotifier(capacity=5)
        alerts = [make_alert(f"a-{i}", seconds_ago=500) for i in range(20)]
        notifier.process(alerts, now=BASE_TIME)
        assert notifier.seen_count == 5

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            AlertNotifier(capacity=0)


class TestNotificationBus:
    """Tests for NotificationBus.process() gating, history and delivery."""

    def setup_method(self):
        self.webhook = MagicMock()
        self.webhook.send = AsyncMock()
        self.webhook.close = AsyncMock()

    def critical(self):
        return {"kind": CRITICAL_ALERT, "severity": "Critical", "title": "Critical Security Alert", "message": "x"}

    def test_critical_delivered(self):
        bus = NotificationBus(notifier=self.webhook, min_severity="HIGH", rate_limit_per_min=5)

        delivered = asyncio.run(bus.process(self.critical()))

        assert delivered is True
        self.webhook.send.assert_awaited_once()
        assert bus.recent()[0]["kind"] == CRITICAL_ALERT

    def test_below_min_severity_skipped(self):
        bus = NotificationBus(notifier=self.webhook, min_severity="CRITICAL")
        notification = {"kind": HIGH_VOLUME, "severity": "High", "title": "t", "message": "m"}

        assert asyncio.run(bus.process(notification)) is False
        self.webhook.send.assert_not_awaited()
        assert bus.recent() == []

    def test_logging_only_without_webhook(self):
        bus = NotificationBus(notifier=None, min_severity="LOW")

        assert asyncio.run(bus.process(self.critical())) is False
        assert len(bus.recent()) == 1

    def test_rate_limit(self):
        bus = NotificationBus(notifier=self.webhook, min_severity="LOW", rate_limit_per_min=2)

        async def send_three():
            return [await bus.process(self.critical()) for _ in range(3)]

        assert asyncio.run(send_three()) == [True, True, False]
        assert self.webhook.send.await_count == 2

    def test_retry_then_give_up(self):
        self.webhook.send.side_effect = RuntimeError("boom")
        bus = NotificationBus(notifier=self.webhook, min_severity="LOW", retry_delays=[0, 0])

        assert asyncio.run(bus.process(self.critical())) is False
        assert self.webhook.send.await_count == 3

    def test_retry_recovers(self):
        self.webhook.send.side_effect = [RuntimeError("boom"), None]
        bus = NotificationBus(notifier=self.webhook, min_severity="LOW", retry_delays=[0])

        assert asyncio.run(bus.process(self.critical())) is True

    def test_unknown_severity_dropped(self):
        bus = NotificationBus(notifier=self.webhook, min_severity="LOW")
        assert asyncio.run(bus.process({"kind": "x", "severity": "Severe"})) is False

    def test_worker_drains_queue(self):
        bus = NotificationBus(notifier=self.webhook, min_severity="LOW")

        async def run():
            bus.start()
            bus.enqueue(self.critical())
            bus.enqueue(self.critical())
            await bus.stop()

        asyncio.run(run())
        assert self.webhook.send.await_count == 2
        self.webhook.close.assert_awaited_once()

    def test_enqueue_ignored_when_stopped(self):
        bus = NotificationBus(notifier=self.webhook)
        bus.enqueue(self.critical())
        assert bus.running is False


class TestWebhookNotifier:
    """Tests for WebhookNotifier payloads and delivery errors."""

    def test_format_text(self):
        notifier = WebhookNotifier(url="http://hooks.local/x")
        text = notifier.format_text({
            "kind": CRITICAL_ALERT,
            "severity": "Critical",
            "title": "Critical Security Alert",
            "message": "DoS detected from 10.0.0.1",
            "source_ip": "10.0.0.1",
            "dest_ip": "192.168.1.10",
            "confidence_score": 0.95,
        })

        assert "Critical Security Alert" in text
        assert "DoS detected from 10.0.0.1" in text
        assert "10.0.0.1 → 192.168.1.10" in text
        assert "confidence=0.95" in text

    def test_send_posts_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = request.content
            return httpx.Response(200)

        notifier = WebhookNotifier(url="http://hooks.local/x")
        notifier._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        async def run():
            await notifier.send({"kind": CRITICAL_ALERT, "severity": "Critical", "title": "t", "message": "m"})
            await notifier.close()

        asyncio.run(run())
        assert b'"kind":"critical_alert"' in captured["body"].replace(b" ", b"")

    def test_send_rate_limited_raises(self):
        notifier = WebhookNotifier(url="http://hooks.local/x")
        notifier._client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(429, headers={"Retry-After": "3"}))
        )

        async def run():
            try:
                await notifier.send({"kind": CRITICAL_ALERT, "severity": "Critical"})
            finally:
                await notifier.close()

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())

    def test_send_without_url(self):
        notifier = WebhookNotifier(url="")
        with pytest.raises(ValueError):
            asyncio.run(notifier.send({"kind": CRITICAL_ALERT}))
