"""
NetShield - Demo Traffic Generator
Populates a store with synthetic traffic, alerts and blocks.
"""

import logging
import random
from typing import Optional, Tuple

from netshield.detectors.severity import AttackType, Severity
from netshield.errors import DuplicateBlock
from netshield.repository import auto_block, block_ip, record_alert, record_traffic
from netshield.schemas import Verdict
from netshield.store import DataStore

logger = logging.getLogger(__name__)

DEMO_ATTACK_TYPES = [AttackType.DOS, AttackType.PROBE, AttackType.R2L, AttackType.U2R]
DEMO_SEVERITIES = list(Severity)

SAMPLE_ATTACKER_IP = "192.168.1.100"
SAMPLE_TARGET_IP = "10.0.0.1"


def random_ip(rng: random.Random) -> str:
    return ".".join(str(rng.randint(1, 254)) for _ in range(4))


async def generate_demo_traffic(store: DataStore, rng: Optional[random.Random] = None) -> Tuple[int, int]:
    """
    Append one traffic snapshot and 1-3 alerts; about half of the Critical
    ones get their source auto-blocked.

    Returns:
        (alerts_created, blocks_created)
    """
    rng = rng or random.Random()
    alert_count = rng.randint(1, 3)
    blocks = 0

    for _ in range(alert_count):
        verdict = Verdict(
            is_malicious=True,
            attack_type=rng.choice(DEMO_ATTACK_TYPES),
            severity=rng.choice(DEMO_SEVERITIES),
            confidence=round(rng.random(), 4),
        )
        alert = await record_alert(store, verdict, random_ip(rng), random_ip(rng))
        if alert.severity == Severity.CRITICAL and rng.random() < 0.5:
            if await auto_block(store, alert):
                blocks += 1

    await record_traffic(
        store,
        normal=rng.randint(1, 50),
        malicious=alert_count * rng.randint(1, 10),
        bytes_transferred=rng.randint(1000, 11000),
    )

    logger.info(f"Demo traffic generated: {alert_count} alert(s), {blocks} block(s)")
    return alert_count, blocks


async def generate_sample_attack(store: DataStore) -> Tuple[int, int]:
    """A critical DoS alert from a fixed attacker, blocked straight away."""
    verdict = Verdict(
        is_malicious=True,
        attack_type=AttackType.DOS,
        severity=Severity.CRITICAL,
        confidence=0.95,
    )
    await record_alert(store, verdict, SAMPLE_ATTACKER_IP, SAMPLE_TARGET_IP)

    try:
        await block_ip(store, SAMPLE_ATTACKER_IP, reason="Detected DoS attack pattern")
    except DuplicateBlock:
        logger.info(f"Sample attacker {SAMPLE_ATTACKER_IP} already blocked")
        return 1, 0
    return 1, 1
