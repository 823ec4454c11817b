"""
NetShield - network intrusion alert classification and aggregation service.
"""

__version__ = "1.0.0"
