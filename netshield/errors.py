"""
NetShield - Error Taxonomy
"""

from typing import Any, Dict, Optional


class NetShieldError(Exception):
    """Base class for errors raised by the detection core."""


class InvalidInput(NetShieldError):
    """Malformed classification request or feature vector."""


class StoreUnavailable(NetShieldError):
    """A read or write against the datastore failed or timed out."""


class NotFound(NetShieldError):
    """A requested record does not exist."""


class DuplicateBlock(NetShieldError):
    """An active block already exists for the address."""

    def __init__(self, ip_address: str, existing: Optional[Dict[str, Any]] = None):
        super().__init__(f"{ip_address} is already blocked")
        self.ip_address = ip_address
        self.existing = existing
