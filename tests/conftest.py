"""
Shared fixtures for NetShield tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import pytest

from netshield.detectors.severity import AttackType, Severity
from netshield.schemas import Alert, FeatureVector

BASE_TIME = datetime(2024, 1, 12, 10, 0, 0, tzinfo=timezone.utc)


def zero_features(**overrides: Any) -> Dict[str, Any]:
    """Feature dict with every numeric field at zero; quiet tcp/http/SF connection."""
    data: Dict[str, Any] = {}
    for name, field in FeatureVector.model_fields.items():
        data[name] = 0.0 if field.annotation is float else 0
    data.update(protocol_type="tcp", service="http", flag="SF")
    data.update(overrides)
    return data


def make_alert(
    alert_id: str = "a-1",
    source_ip: str = "10.0.0.1",
    attack_type: AttackType = AttackType.DOS,
    severity: Severity = Severity.HIGH,
    confidence: float = 0.7,
    seconds_ago: float = 0,
    now: datetime = BASE_TIME,
) -> Alert:
    return Alert(
        id=alert_id,
        timestamp=now - timedelta(seconds=seconds_ago),
        source_ip=source_ip,
        dest_ip="192.168.1.10",
        attack_type=attack_type,
        severity=severity,
        confidence_score=confidence,
    )


@pytest.fixture
def features() -> Dict[str, Any]:
    return zero_features()


@pytest.fixture
def r2l_features() -> Dict[str, Any]:
    return zero_features(num_failed_logins=5)
