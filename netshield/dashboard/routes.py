"""
NetShield - Dashboard API
Read-only JSON views over recent alerts, traffic counters and the blocklist.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from netshield.config import settings
from netshield.dashboard.aggregator import (
    alerts_in_window,
    investigate,
    rank_by_attack_type,
    rank_by_source_ip,
    severity_counts,
    traffic_overview,
    traffic_series,
)
from netshield.dependencies import get_monitor, get_store
from netshield.errors import StoreUnavailable
from netshield.monitor import AlertMonitor
from netshield.repository import (
    active_blocks,
    get_alert,
    latest_traffic_stats,
    recent_alerts,
    traffic_history,
)
from netshield.schemas import Alert, AlertInvestigation, DashboardSummary, RankingEntry
from netshield.store import DataStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["dashboard"])


def _entries(ranked) -> List[RankingEntry]:
    return [RankingEntry(key=key, count=count) for key, count in ranked]


@router.get("/alerts", response_model=List[Alert])
async def list_alerts(
    limit: int = Query(50, ge=1, le=1000),
    store: DataStore = Depends(get_store),
):
    """Most recent alerts first."""
    return await recent_alerts(store, limit=limit)


@router.get("/alerts/{alert_id}", response_model=AlertInvestigation)
async def alert_detail(alert_id: str, store: DataStore = Depends(get_store)):
    """Investigation view: threat score, level and recommended action."""
    alert = await get_alert(store, alert_id)
    return investigate(alert)


@router.get("/dashboard/summary", response_model=DashboardSummary)
async def dashboard_summary(store: DataStore = Depends(get_store)):
    """
    Overview of the recent alert window.
    When the store cannot be read the summary is returned empty with status "unknown".
    """
    try:
        alerts = await recent_alerts(store, limit=settings.alert_window_limit)
        stats = await latest_traffic_stats(store)
        blocks = await active_blocks(store)
    except StoreUnavailable as e:
        logger.warning(f"Dashboard summary degraded: {e}")
        return DashboardSummary(status="unknown")

    return DashboardSummary(
        status="ok",
        alerts_considered=len(alerts),
        severity_counts=severity_counts(alerts),
        top_sources=_entries(rank_by_source_ip(alerts, settings.top_sources_k)),
        top_attacks=_entries(rank_by_attack_type(alerts, settings.top_attacks_k)),
        alerts_last_minute=len(alerts_in_window(alerts, seconds=settings.volume_window_seconds)),
        traffic=traffic_overview(stats),
        active_blocks=len(blocks),
    )


@router.get("/dashboard/top-sources", response_model=List[RankingEntry])
async def top_sources(
    k: Optional[int] = Query(None, ge=0),
    store: DataStore = Depends(get_store),
):
    alerts = await recent_alerts(store, limit=settings.alert_window_limit)
    return _entries(rank_by_source_ip(alerts, settings.top_sources_k if k is None else k))


@router.get("/dashboard/top-attacks", response_model=List[RankingEntry])
async def top_attacks(
    k: Optional[int] = Query(None, ge=0),
    store: DataStore = Depends(get_store),
):
    alerts = await recent_alerts(store, limit=settings.alert_window_limit)
    return _entries(rank_by_attack_type(alerts, settings.top_attacks_k if k is None else k))


@router.get("/traffic")
async def traffic(
    limit: int = Query(20, ge=1, le=500),
    store: DataStore = Depends(get_store),
) -> Dict[str, Any]:
    """Latest counters with derived percentages, plus a chart series (oldest first)."""
    history = await traffic_history(store, limit=limit)
    latest = history[0] if history else None
    overview = traffic_overview(latest)
    return {
        "overview": overview.model_dump() if overview else None,
        "series": [point.model_dump(mode="json") for point in traffic_series(history, limit=limit)],
    }


@router.get("/notifications/recent")
async def recent_notifications(monitor: Optional[AlertMonitor] = Depends(get_monitor)) -> List[Dict[str, Any]]:
    """Notifications accepted by the bus, most recent first."""
    if monitor is None or monitor.bus is None:
        return []
    return monitor.bus.recent()
