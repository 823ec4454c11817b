"""
NetShield - Notification Types
"""

from typing import TypedDict, Optional

# Notification kinds
CRITICAL_ALERT = "critical_alert"
HIGH_VOLUME = "high_volume"


class Notification(TypedDict, total=False):
    """Structured notification emitted by the alert notifier."""
    kind: str  # critical_alert, high_volume
    severity: str  # Low, Medium, High, Critical
    title: str
    message: str
    timestamp: str
    alert_id: Optional[str]
    source_ip: Optional[str]
    dest_ip: Optional[str]
    attack_type: Optional[str]
    confidence_score: Optional[float]
    alert_count: Optional[int]
