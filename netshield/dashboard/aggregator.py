"""
NetShield - Alert Aggregator
Read-only derivations over a most-recent-first window of alerts.

Nothing here touches the store; the callers fetch the window and pass it in.
"""

import math
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from netshield.detectors.severity import (
    RecommendedAction,
    SEVERITY_ACTIONS,
    SEVERITY_SCORE_FLOOR,
    Severity,
    get_network_threat_level,
    get_threat_level,
)
from netshield.schemas import Alert, AlertInvestigation, TrafficOverview, TrafficPoint, TrafficStats

DEFAULT_TOP_SOURCES = 10
DEFAULT_TOP_ATTACKS = 5


def _rank(keys: Iterable[str], k: int) -> List[Tuple[str, int]]:
    # Counter keeps first-seen order and sorted() is stable, so ties stay in input order
    counts = Counter(keys)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:max(k, 0)]


def rank_by_source_ip(alerts: Sequence[Alert], k: int = DEFAULT_TOP_SOURCES) -> List[Tuple[str, int]]:
    """
    Top-k source addresses by alert count.

    Ties keep the order in which addresses first appear in the input. Counts
    of addresses outside the top k are dropped.
    """
    return _rank((a.source_ip for a in alerts), k)


def rank_by_attack_type(alerts: Sequence[Alert], k: int = DEFAULT_TOP_ATTACKS) -> List[Tuple[str, int]]:
    """Top-k attack families by alert count, same ordering as rank_by_source_ip."""
    return _rank((a.attack_type.value for a in alerts), k)


def severity_counts(alerts: Sequence[Alert]) -> Dict[str, int]:
    """Alert count per severity; every severity is present, zero when absent."""
    counts = {sev.value: 0 for sev in Severity}
    for alert in alerts:
        counts[alert.severity.value] += 1
    return counts


def threat_score(alert: Alert) -> int:
    """
    0-100 threat score: confidence as a percentage (rounded half up), raised
    to the severity floor (Critical 90, High 70, Medium 50, Low 0).
    """
    base = int(math.floor(alert.confidence_score * 100 + 0.5))
    score = max(base, SEVERITY_SCORE_FLOOR[alert.severity])
    return min(score, 100)


def threat_level(score: int) -> Severity:
    return get_threat_level(score)


def recommended_action(alert: Alert) -> RecommendedAction:
    """Response recommendation, a function of severity only."""
    return SEVERITY_ACTIONS[alert.severity]


def investigate(alert: Alert) -> AlertInvestigation:
    """Drill-down view for one alert."""
    score = threat_score(alert)
    return AlertInvestigation(
        alert=alert,
        threat_score=score,
        threat_level=threat_level(score),
        recommended_action=recommended_action(alert),
    )


def alerts_in_window(
    alerts: Sequence[Alert],
    now: Optional[datetime] = None,
    seconds: int = 60,
) -> List[Alert]:
    """Alerts whose timestamp falls within the last `seconds` before now."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=seconds)
    return [a for a in alerts if cutoff < a.timestamp <= now]


def traffic_overview(stats: Optional[TrafficStats]) -> Optional[TrafficOverview]:
    """Percentages and threat level for the latest snapshot; None when there is none."""
    if stats is None:
        return None

    total = stats.total_packets
    malicious_pct = (stats.malicious_packets / total) * 100 if total > 0 else 0.0
    normal_pct = (stats.normal_packets / total) * 100 if total > 0 else 0.0

    return TrafficOverview(
        total_packets=total,
        normal_packets=stats.normal_packets,
        malicious_packets=stats.malicious_packets,
        malicious_percentage=round(malicious_pct, 2),
        normal_percentage=round(normal_pct, 2),
        threat_level=get_network_threat_level(malicious_pct),
        megabytes_transferred=round(stats.bytes_transferred / (1024 * 1024), 2),
    )


def traffic_series(stats: Sequence[TrafficStats], limit: int = 20) -> List[TrafficPoint]:
    """Chart points, oldest first, from a most-recent-first list of snapshots."""
    return [
        TrafficPoint(
            timestamp=s.timestamp,
            total=s.total_packets,
            normal=s.normal_packets,
            malicious=s.malicious_packets,
        )
        for s in reversed(list(stats)[:limit])
    ]
