"""
NetShield - Repository
Domain operations over a DataStore: alerts, traffic counters and the blocklist.
"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta
from typing import List, Optional

from netshield.errors import DuplicateBlock, NotFound
from netshield.schemas import Alert, BlockedIP, FeatureVector, TrafficStats, Verdict
from netshield.detectors.severity import Severity
from netshield.store import DataStore, TABLE_ALERTS, TABLE_BLOCKS, TABLE_TRAFFIC, utcnow

logger = logging.getLogger(__name__)

# One writer lock per store: read-latest-then-append must not interleave within a process
_traffic_locks: "weakref.WeakKeyDictionary[DataStore, asyncio.Lock]" = weakref.WeakKeyDictionary()


def _traffic_lock(store: DataStore) -> asyncio.Lock:
    lock = _traffic_locks.get(store)
    if lock is None:
        lock = asyncio.Lock()
        _traffic_locks[store] = lock
    return lock


# =====================================================
# Alerts
# =====================================================

async def record_alert(
    store: DataStore,
    verdict: Verdict,
    source_ip: str,
    dest_ip: str,
    features: Optional[FeatureVector] = None,
    timestamp: Optional[datetime] = None,
) -> Alert:
    """Persist a malicious verdict as an alert."""
    record = await store.insert(TABLE_ALERTS, {
        "timestamp": timestamp,
        "source_ip": source_ip,
        "dest_ip": dest_ip,
        "attack_type": verdict.attack_type.value,
        "severity": verdict.severity.value,
        "confidence_score": round(verdict.confidence, 4),
        "packet_data": features.model_dump() if features is not None else None,
    })
    alert = Alert.model_validate(record)
    logger.info(
        f"Alert stored: id={alert.id} {alert.attack_type.value} ({alert.severity.value}) "
        f"{alert.source_ip} -> {alert.dest_ip}"
    )
    return alert


async def recent_alerts(store: DataStore, limit: int = 100) -> List[Alert]:
    """Most recent alerts first."""
    rows = await store.query(TABLE_ALERTS, order_by="timestamp", descending=True, limit=limit)
    return [Alert.model_validate(r) for r in rows]


async def get_alert(store: DataStore, alert_id: str) -> Alert:
    rows = await store.query(TABLE_ALERTS, filters={"id": alert_id}, limit=1)
    if not rows:
        raise NotFound(f"alert {alert_id} not found")
    return Alert.model_validate(rows[0])


# =====================================================
# Traffic Statistics
# =====================================================

async def latest_traffic_stats(store: DataStore) -> Optional[TrafficStats]:
    rows = await store.query(TABLE_TRAFFIC, order_by="timestamp", descending=True, limit=1)
    return TrafficStats.model_validate(rows[0]) if rows else None


async def traffic_history(store: DataStore, limit: int = 50) -> List[TrafficStats]:
    """Most recent snapshots first."""
    rows = await store.query(TABLE_TRAFFIC, order_by="timestamp", descending=True, limit=limit)
    return [TrafficStats.model_validate(r) for r in rows]


async def record_traffic(
    store: DataStore,
    normal: int = 0,
    malicious: int = 0,
    bytes_transferred: int = 0,
) -> TrafficStats:
    """
    Append a new cumulative snapshot: latest counters plus the given increments.

    Writers in this process are serialised, so totals are exact per process.
    Separate processes sharing a store can still race and under-count.
    """
    async with _traffic_lock(store):
        latest = await latest_traffic_stats(store)
        base_total = latest.total_packets if latest else 0
        base_normal = latest.normal_packets if latest else 0
        base_malicious = latest.malicious_packets if latest else 0
        base_bytes = latest.bytes_transferred if latest else 0

        timestamp = utcnow()
        if latest and timestamp <= latest.timestamp:
            # Keep snapshots strictly ordered so "latest by timestamp" is unambiguous
            timestamp = latest.timestamp + timedelta(microseconds=1)

        record = await store.insert(TABLE_TRAFFIC, {
            "timestamp": timestamp,
            "total_packets": base_total + normal + malicious,
            "normal_packets": base_normal + normal,
            "malicious_packets": base_malicious + malicious,
            "bytes_transferred": base_bytes + bytes_transferred,
        })
    return TrafficStats.model_validate(record)


# =====================================================
# Blocklist
# =====================================================

async def active_blocks(store: DataStore) -> List[BlockedIP]:
    rows = await store.query(TABLE_BLOCKS, filters={"is_active": True}, order_by="blocked_at", descending=True)
    return [BlockedIP.model_validate(r) for r in rows]


async def block_ip(store: DataStore, ip_address: str, reason: str = "Manual block") -> BlockedIP:
    """
    Create an active block for an address.

    Raises:
        DuplicateBlock: an active block already exists (carries the existing record)
    """
    existing = await store.query(
        TABLE_BLOCKS, filters={"ip_address": ip_address, "is_active": True}, limit=1
    )
    if existing:
        raise DuplicateBlock(ip_address, existing[0])

    record = await store.insert(TABLE_BLOCKS, {
        "ip_address": ip_address,
        "block_reason": reason,
        "is_active": True,
        "unblock_at": None,
    })
    logger.info(f"IP blocked: {ip_address} ({reason})")
    return BlockedIP.model_validate(record)


async def unblock_ip(store: DataStore, block_id: str) -> BlockedIP:
    """
    Deactivate a block. Already inactive blocks are returned unchanged.

    Raises:
        NotFound: no block with that id
    """
    rows = await store.query(TABLE_BLOCKS, filters={"id": block_id}, limit=1)
    if not rows:
        raise NotFound(f"block {block_id} not found")

    block = BlockedIP.model_validate(rows[0])
    if not block.is_active:
        return block

    patch = {"is_active": False, "unblock_at": utcnow()}
    await store.update(TABLE_BLOCKS, block_id, patch)
    logger.info(f"IP unblocked: {block.ip_address}")
    return block.model_copy(update=patch)


async def auto_block(store: DataStore, alert: Alert) -> Optional[BlockedIP]:
    """Block the source of a Critical alert; duplicates are logged and ignored."""
    if alert.severity != Severity.CRITICAL:
        return None
    try:
        return await block_ip(
            store,
            alert.source_ip,
            reason=f"Auto-blocked: {alert.attack_type.value} attack detected",
        )
    except DuplicateBlock:
        logger.info(f"Auto-block skipped, {alert.source_ip} already blocked")
        return None
