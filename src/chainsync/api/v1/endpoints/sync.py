"""Sync status API endpoints."""

from typing import Any

from fastapi import APIRouter, HTTPException, status

from chainsync.api.deps import SyncManagerDep
from chainsync.services.sync.schemas import SyncStatusView

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get("", response_model=SyncStatusView)
async def get_sync_status(manager: SyncManagerDep) -> SyncStatusView:
    """Get scheduler and snapshot state.

    Returns:
        Per-chain scheduler state and per-entity snapshot state
    """
    return manager.get_sync_status()


@router.post("/{chain}/tick")
async def trigger_tick(chain: str, manager: SyncManagerDep) -> dict[str, Any]:
    """Run one scheduler tick for a chain immediately.

    Args:
        chain: Chain name as configured in ``rpc_urls``

    Returns:
        Whether a cycle ran to completion

    Raises:
        HTTPException: 404 for an unknown chain, 409 while a cycle is running
    """
    scheduler = manager.schedulers.get(chain)
    if scheduler is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Unknown chain: {chain}")
    if scheduler.state.is_running:
        raise HTTPException(
            status.HTTP_409_CONFLICT, f"A sync cycle is already running on {chain}"
        )

    completed = await scheduler.tick()
    return {
        "chain": chain,
        "cycle_completed": completed,
        "last_completed_height": scheduler.state.last_completed_height,
    }
