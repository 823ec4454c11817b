"""
NetShield - Dashboard Package
"""

from netshield.dashboard.routes import router

__all__ = ["router"]
