"""
Unit tests for the alert aggregator.
"""

from datetime import timedelta

import pytest

from conftest import BASE_TIME, make_alert
from netshield.dashboard.aggregator import (
    alerts_in_window,
    investigate,
    rank_by_attack_type,
    rank_by_source_ip,
    recommended_action,
    severity_counts,
    threat_level,
    threat_score,
    traffic_overview,
    traffic_series,
)
from netshield.detectors.severity import AttackType, RecommendedAction, Severity
from netshield.schemas import TrafficStats


def stats(total=0, normal=0, malicious=0, bytes_transferred=0, seconds_ago=0, stats_id="t-1"):
    return TrafficStats(
        id=stats_id,
        timestamp=BASE_TIME - timedelta(seconds=seconds_ago),
        total_packets=total,
        normal_packets=normal,
        malicious_packets=malicious,
        bytes_transferred=bytes_transferred,
    )


class TestRankings:
    """Tests for top-k source and attack rankings."""

    def test_rank_by_source_ip_counts(self):
        alerts = [
            make_alert("1", source_ip="A"),
            make_alert("2", source_ip="B"),
            make_alert("3", source_ip="A"),
            make_alert("4", source_ip="C"),
            make_alert("5", source_ip="A"),
        ]
        assert rank_by_source_ip(alerts, k=2) == [("A", 3), ("B", 1)]

    def test_ties_keep_first_appearance_order(self):
        alerts = [
            make_alert("1", source_ip="C"),
            make_alert("2", source_ip="B"),
            make_alert("3", source_ip="A"),
        ]
        assert rank_by_source_ip(alerts) == [("C", 1), ("B", 1), ("A", 1)]

    def test_rank_by_attack_type(self):
        alerts = [
            make_alert("1", attack_type=AttackType.PROBE),
            make_alert("2", attack_type=AttackType.DOS),
            make_alert("3", attack_type=AttackType.DOS),
        ]
        assert rank_by_attack_type(alerts) == [("DoS", 2), ("Probe", 1)]

    def test_empty_window(self):
        assert rank_by_source_ip([]) == []
        assert rank_by_attack_type([]) == []

    def test_k_bounds_output(self):
        alerts = [make_alert(str(i), source_ip=f"10.0.0.{i}") for i in range(20)]
        assert len(rank_by_source_ip(alerts)) == 10
        assert len(rank_by_source_ip(alerts, k=3)) == 3
        assert rank_by_source_ip(alerts, k=0) == []

    def test_severity_counts_include_every_level(self):
        alerts = [
            make_alert("1", severity=Severity.CRITICAL),
            make_alert("2", severity=Severity.CRITICAL),
            make_alert("3", severity=Severity.LOW),
        ]
        assert severity_counts(alerts) == {"Low": 1, "Medium": 0, "High": 0, "Critical": 2}


class TestThreatScore:
    """Tests for threat score, level and recommended action."""

    @pytest.mark.parametrize("severity,confidence,expected", [
        (Severity.CRITICAL, 0.5, 90),
        (Severity.CRITICAL, 0.95, 95),
        (Severity.HIGH, 0.1, 70),
        (Severity.MEDIUM, 0.42, 50),
        (Severity.LOW, 0.42, 42),
        (Severity.LOW, 0.0, 0),
        (Severity.CRITICAL, 1.0, 100),
    ])
    def test_score(self, severity, confidence, expected):
        alert = make_alert(severity=severity, confidence=confidence)
        assert threat_score(alert) == expected

    def test_score_rounds_half_up(self):
        assert threat_score(make_alert(severity=Severity.LOW, confidence=0.875)) == 88
        assert threat_score(make_alert(severity=Severity.LOW, confidence=0.125)) == 13

    def test_score_monotone_in_confidence(self):
        for severity in Severity:
            scores = [
                threat_score(make_alert(severity=severity, confidence=c / 100))
                for c in range(0, 101)
            ]
            assert scores == sorted(scores)
            assert all(0 <= s <= 100 for s in scores)

    def test_score_monotone_in_severity(self):
        ordered = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]
        for c in (0.0, 0.3, 0.6, 0.99):
            scores = [threat_score(make_alert(severity=s, confidence=c)) for s in ordered]
            assert scores == sorted(scores)

    @pytest.mark.parametrize("score,expected", [
        (95, Severity.CRITICAL),
        (90, Severity.CRITICAL),
        (89, Severity.HIGH),
        (70, Severity.HIGH),
        (50, Severity.MEDIUM),
        (49, Severity.LOW),
    ])
    def test_threat_level(self, score, expected):
        assert threat_level(score) == expected

    def test_recommended_action_depends_on_severity_only(self):
        assert recommended_action(make_alert(severity=Severity.CRITICAL, confidence=0.1)) == RecommendedAction.BLOCK_IMMEDIATELY
        assert recommended_action(make_alert(severity=Severity.HIGH)) == RecommendedAction.BLOCK_AND_MONITOR
        assert recommended_action(make_alert(severity=Severity.MEDIUM)) == RecommendedAction.MONITOR_CLOSELY
        assert recommended_action(make_alert(severity=Severity.LOW, confidence=0.99)) == RecommendedAction.LOG_AND_CONTINUE

    def test_investigate_critical_low_confidence(self):
        view = investigate(make_alert(severity=Severity.CRITICAL, confidence=0.5))

        assert view.threat_score == 90
        assert view.threat_level == Severity.CRITICAL
        assert view.recommended_action == RecommendedAction.BLOCK_IMMEDIATELY


class TestWindows:
    """Tests for the time window and traffic views."""

    def test_alerts_in_window(self):
        alerts = [
            make_alert("1", seconds_ago=5),
            make_alert("2", seconds_ago=59),
            make_alert("3", seconds_ago=60),
            make_alert("4", seconds_ago=300),
        ]
        recent = alerts_in_window(alerts, now=BASE_TIME, seconds=60)
        assert [a.id for a in recent] == ["1", "2"]

    def test_traffic_overview_percentages(self):
        overview = traffic_overview(stats(total=200, normal=170, malicious=30, bytes_transferred=3 * 1024 * 1024))

        assert overview.malicious_percentage == 15.0
        assert overview.normal_percentage == 85.0
        assert overview.threat_level == "CRITICAL"
        assert overview.megabytes_transferred == 3.0

    @pytest.mark.parametrize("malicious,expected", [
        (0, "LOW"),
        (1, "LOW"),
        (2, "MEDIUM"),
        (6, "HIGH"),
        (11, "CRITICAL"),
    ])
    def test_network_threat_level(self, malicious, expected):
        overview = traffic_overview(stats(total=100, normal=100 - malicious, malicious=malicious))
        assert overview.threat_level == expected

    def test_traffic_overview_empty(self):
        assert traffic_overview(None) is None
        overview = traffic_overview(stats())
        assert overview.malicious_percentage == 0.0
        assert overview.threat_level == "LOW"

    def test_traffic_series_oldest_first(self):
        history = [
            stats(total=30, seconds_ago=0, stats_id="c"),
            stats(total=20, seconds_ago=10, stats_id="b"),
            stats(total=10, seconds_ago=20, stats_id="a"),
        ]
        series = traffic_series(history)
        assert [p.total for p in series] == [10, 20, 30]

        limited = traffic_series(history, limit=2)
        assert [p.total for p in limited] == [20, 30]
