"""
NetShield - Security Utilities
"""

from typing import Optional

from fastapi import Header, HTTPException, status
from netshield.config import settings


async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> Optional[str]:
    """
    Verify the API key from the X-API-Key header.
    Open when no API_KEY is configured; otherwise raises 401 on a missing or wrong key.
    """
    if not settings.api_key:
        return None
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "API-Key"},
        )
    return x_api_key
