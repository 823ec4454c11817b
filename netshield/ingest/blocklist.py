"""
NetShield - Blocklist Management
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from netshield.dependencies import get_store
from netshield.errors import DuplicateBlock
from netshield.repository import active_blocks, block_ip, unblock_ip
from netshield.schemas import BlockedIP, BlockRequest, BlockResponse
from netshield.security import verify_api_key
from netshield.store import DataStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/blocked-ips", tags=["blocklist"])


@router.get("", response_model=List[BlockedIP])
async def list_blocked_ips(store: DataStore = Depends(get_store)):
    """Active blocks, most recent first."""
    return await active_blocks(store)


@router.post("", response_model=BlockResponse)
async def create_block(
    payload: BlockRequest,
    api_key: str = Depends(verify_api_key),
    store: DataStore = Depends(get_store),
):
    """Block an address. Blocking an already blocked address returns the existing block."""
    try:
        blocked = await block_ip(store, payload.ip_address, payload.block_reason)
    except DuplicateBlock as e:
        logger.info(f"Duplicate block request for {e.ip_address} ignored")
        return BlockResponse(blocked=BlockedIP.model_validate(e.existing), duplicate=True)
    return BlockResponse(blocked=blocked)


@router.post("/{block_id}/unblock", response_model=BlockedIP)
async def remove_block(
    block_id: str,
    api_key: str = Depends(verify_api_key),
    store: DataStore = Depends(get_store),
):
    """Deactivate a block."""
    return await unblock_ip(store, block_id)
