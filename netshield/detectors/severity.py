"""
NetShield - Severity Classification
"""

from enum import Enum


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class AttackType(str, Enum):
    NORMAL = "Normal"
    DOS = "DoS"
    PROBE = "Probe"
    R2L = "R2L"
    U2R = "U2R"


class RecommendedAction(str, Enum):
    BLOCK_IMMEDIATELY = "BlockImmediately"
    BLOCK_AND_MONITOR = "BlockAndMonitor"
    MONITOR_CLOSELY = "MonitorClosely"
    LOG_AND_CONTINUE = "LogAndContinue"


# Higher value = more severe
SEVERITY_ORDER = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

# Minimum threat score per severity, so a low confidence never contradicts severity
SEVERITY_SCORE_FLOOR = {
    Severity.CRITICAL: 90,
    Severity.HIGH: 70,
    Severity.MEDIUM: 50,
    Severity.LOW: 0,
}

SEVERITY_ACTIONS = {
    Severity.CRITICAL: RecommendedAction.BLOCK_IMMEDIATELY,
    Severity.HIGH: RecommendedAction.BLOCK_AND_MONITOR,
    Severity.MEDIUM: RecommendedAction.MONITOR_CLOSELY,
    Severity.LOW: RecommendedAction.LOG_AND_CONTINUE,
}


def parse_severity(value: str) -> Severity:
    """
    Resolve a severity name case-insensitively ("critical", "CRITICAL", "Critical").

    Raises:
        ValueError: if the name is not a known severity
    """
    for sev in Severity:
        if sev.value.lower() == (value or "").strip().lower():
            return sev
    raise ValueError(f"Unknown severity: {value!r}")


def more_severe(a: Severity, b: Severity) -> Severity:
    """Return whichever of the two severities ranks higher."""
    return a if SEVERITY_ORDER[a] >= SEVERITY_ORDER[b] else b


def severity_meets_threshold(severity: Severity, min_severity: Severity) -> bool:
    """Check if severity meets or exceeds the minimum threshold."""
    return SEVERITY_ORDER[severity] >= SEVERITY_ORDER[min_severity]


def get_score_severity(score: float) -> Severity:
    """
    Map a suspicion score onto its severity band.

    Args:
        score: Accumulated suspicion score

    Returns:
        Low below 0.5, Medium below 0.6, High up to and including 0.8, Critical above
    """
    if score > 0.8:
        return Severity.CRITICAL
    if score >= 0.6:
        return Severity.HIGH
    if score >= 0.5:
        return Severity.MEDIUM
    return Severity.LOW


def get_threat_level(score: int) -> Severity:
    """
    Map a 0-100 threat score back onto a severity badge.

    Args:
        score: Threat score as produced by the aggregator

    Returns:
        Severity badge for display
    """
    if score >= 90:
        return Severity.CRITICAL
    if score >= 70:
        return Severity.HIGH
    if score >= 50:
        return Severity.MEDIUM
    return Severity.LOW


def get_network_threat_level(malicious_percentage: float) -> str:
    """
    Overall network threat level from the share of malicious packets.

    Args:
        malicious_percentage: Malicious packets as a percentage of all packets

    Returns:
        Level string: CRITICAL, HIGH, MEDIUM, or LOW
    """
    if malicious_percentage > 10:
        return "CRITICAL"
    if malicious_percentage > 5:
        return "HIGH"
    if malicious_percentage > 1:
        return "MEDIUM"
    return "LOW"
