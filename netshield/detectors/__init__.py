"""
NetShield - Detectors Package
"""

from netshield.detectors.severity import (
    AttackType,
    RecommendedAction,
    Severity,
    SEVERITY_ORDER,
    get_score_severity,
    get_threat_level,
    get_network_threat_level,
)

__all__ = [
    "AttackType",
    "RecommendedAction",
    "Severity",
    "SEVERITY_ORDER",
    "get_score_severity",
    "get_threat_level",
    "get_network_threat_level",
]
