"""
NetShield - Webhook Notifier
"""

import logging
from typing import Any, Dict, Optional

import httpx

from netshield.config import settings
from netshield.notifications.types import Notification

logger = logging.getLogger(__name__)

SEVERITY_EMOJI = {
    "Critical": "🚨",
    "High": "🔴",
    "Medium": "🟠",
    "Low": "🟡",
}


class WebhookNotifier:
    """
    Posts notifications as JSON to a webhook URL (Slack/Discord-compatible
    "text" field plus the structured notification).
    Reuses a single AsyncClient for connection pooling.
    """

    def __init__(self, url: Optional[str] = None, timeout: Optional[int] = None):
        self._client: Optional[httpx.AsyncClient] = None
        self._url: str = url if url is not None else settings.notify_webhook_url
        self._timeout: int = timeout if timeout is not None else settings.notify_timeout_seconds

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(self, notification: Notification) -> None:
        """
        Deliver one notification.
        Raises on failure (caller handles retry).
        """
        if not self._url:
            raise ValueError("Webhook URL not configured")

        client = await self._get_client()
        response = await client.post(self._url, json=self.build_payload(notification))

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "unknown")
            raise httpx.HTTPStatusError(
                f"Rate limited. Retry after: {retry_after}s",
                request=response.request,
                response=response,
            )

        response.raise_for_status()

    def build_payload(self, notification: Notification) -> Dict[str, Any]:
        return {"text": self.format_text(notification), "notification": dict(notification)}

    def format_text(self, notification: Notification) -> str:
        """Human-readable one-message rendering."""
        severity = notification.get("severity", "")
        emoji = SEVERITY_EMOJI.get(severity, "⚠️")

        lines = [
            f"{emoji} {notification.get('title', 'NetShield Alert')}",
            notification.get("message"),
        ]

        source_ip = notification.get("source_ip")
        dest_ip = notification.get("dest_ip")
        if source_ip or dest_ip:
            lines.append(f"🌐 {source_ip or '?'} → {dest_ip or '?'}")

        confidence = notification.get("confidence_score")
        if confidence is not None:
            lines.append(f"🤖 confidence={confidence:.2f}")

        if notification.get("timestamp"):
            lines.append(f"🕒 {notification['timestamp']}")

        return "\n".join(line for line in lines if line)
