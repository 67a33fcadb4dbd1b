"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from chainsync.services.sync.manager import SyncManager


def get_sync_manager(request: Request) -> SyncManager:
    """Get the sync manager created by the application lifespan."""
    manager = getattr(request.app.state, "sync_manager", None)
    if manager is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Sync core not initialized")
    return manager


SyncManagerDep = Annotated[SyncManager, Depends(get_sync_manager)]
