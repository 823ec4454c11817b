"""
NetShield - Ingestion Package
"""

from netshield.ingest.classify import router as classify_router
from netshield.ingest.blocklist import router as blocklist_router

__all__ = ["classify_router", "blocklist_router"]
